"""Masking of contact data for logs."""


def mask_email(email: str | None) -> str:
    """user@example.com → u***@e***.com"""
    if not email or not isinstance(email, str):
        return "***"

    local, _, domain = email.partition("@")
    if not local or not domain:
        return "***@***"

    masked_local = f"{local[0]}***" if len(local) > 1 else "***"

    domain_parts = domain.split(".")
    if len(domain_parts) >= 2 and domain_parts[0]:
        return f"{masked_local}@{domain_parts[0][0]}***.{domain_parts[-1]}"
    return f"{masked_local}@{domain[0]}***"


def mask_handle(handle: str | None) -> str:
    """@username → @u******"""
    if not handle or not isinstance(handle, str):
        return "***"

    username = handle[1:] if handle.startswith("@") else handle
    if not username:
        return "@***"
    if len(username) == 1:
        return "@***"
    return f"@{username[0]}{'*' * min(len(username) - 1, 6)}"


def mask_contact(contact: str | None, kind: str | None) -> str:
    if not contact:
        return "***"
    if kind == "EMAIL":
        return mask_email(contact)
    if kind == "HANDLE":
        return mask_handle(contact)
    return "***"
