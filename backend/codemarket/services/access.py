"""Access decisions for project capabilities (view code, run app, download code)."""
from typing import Optional

from codemarket.models.license import License
from codemarket.models.project import Project
from codemarket.models.user import User

CAPABILITIES = ("view_code", "run_app", "download_code")

# License permission flag each capability needs; run_app only needs a usable license
CAPABILITY_PERMISSIONS: dict[str, Optional[str]] = {
    "view_code": "view_code",
    "run_app": None,
    "download_code": "download_code",
}


def can_access(
    access_level: str,
    user: Optional[User],
    license: Optional[License],
    permission: Optional[str] = None,
) -> bool:
    """
    Decide one capability from its access level and the caller's license.

    - public: always allowed
    - private: never allowed
    - licensed: the caller is known, holds a usable license (active, paid,
      not expired) and, when ``permission`` is given, that flag is set
    """
    if access_level == "public":
        return True
    if access_level != "licensed":
        return False
    if user is None or license is None:
        return False
    if not license.is_usable():
        return False
    if permission is not None and not getattr(license, permission, False):
        return False
    return True


def is_author(project: Project, user: Optional[User]) -> bool:
    return user is not None and project.author_id == user.uuid


def capability_access(
    project: Project,
    capability: str,
    user: Optional[User],
    license: Optional[License],
) -> bool:
    """Authors always pass; everyone else goes through :func:`can_access`."""
    if is_author(project, user):
        return True
    return can_access(
        project.access_level(capability),
        user,
        license,
        CAPABILITY_PERMISSIONS[capability],
    )


def access_summary(
    project: Project,
    user: Optional[User],
    license: Optional[License],
) -> dict[str, bool]:
    """Evaluate every capability independently."""
    return {
        capability: capability_access(project, capability, user, license)
        for capability in CAPABILITIES
    }
