from __future__ import annotations

from onboarding.core.config import WorkflowConfig


def build_public_path(config: WorkflowConfig, path: str) -> str:
    base_path = (config.public_app_base_path or "").strip()
    if base_path and not base_path.startswith("/"):
        base_path = f"/{base_path}"
    base_path = base_path.rstrip("/")
    if path and not path.startswith("/"):
        path = f"/{path}"
    return f"{base_path}{path}" if base_path else path


def build_public_link(config: WorkflowConfig, path: str) -> str:
    base = (config.public_app_origin or "").rstrip("/")
    full_path = build_public_path(config, path)
    return f"{base}{full_path}" if base else full_path


def shortlist_links(config: WorkflowConfig, token: str) -> dict[str, str]:
    return {
        "accept_url": build_public_link(config, f"/respond/{token}/accept"),
        "decline_url": build_public_link(config, f"/respond/{token}/decline"),
    }


def document_upload_link(config: WorkflowConfig, token: str) -> str:
    return build_public_link(config, f"/documents/{token}")


def offer_links(config: WorkflowConfig, token: str) -> dict[str, str]:
    return {
        "offer_url": build_public_link(config, f"/offer/{token}"),
        "accept_url": build_public_link(config, f"/offer/{token}/accept"),
        "decline_url": build_public_link(config, f"/offer/{token}/decline"),
        "letter_url": build_public_link(config, f"/offer-letter/{token}"),
        "download_url": build_public_link(config, f"/offer-letter/{token}/download"),
    }
