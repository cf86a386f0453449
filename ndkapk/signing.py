from .cli_logger import logger
from .errors import MissingReleaseKeyError
from .ndk import Key


def resolve_signing_key(project, profile, ndk):
    """Pick the key a package built with ``profile`` is signed with.

    A key configured for the profile always wins. Without one, dev builds fall
    back to the shared debug key and every other profile is refused, so a
    release package is never signed with the debug key by accident.
    """
    signing = project.signing.get(profile.name)
    if signing is not None:
        path = project.resolve_path(signing.path)
        logger.info(f"Signing with the key configured for profile '{profile.name}'")
        return Key(path, signing.keystore_password)
    if profile.is_dev:
        return ndk.debug_key()
    raise MissingReleaseKeyError(profile.name)
