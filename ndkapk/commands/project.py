import click

from ..builder import ApkBuilder
from ..decorators import default_manifest_path
from ..subcommand import Profile, Subcommand


def resolve_profile(release, profile):
    if release and profile and profile != "release":
        raise click.UsageError("--release conflicts with --profile.")
    if release:
        return Profile.RELEASE
    return Profile(profile) if profile else Profile.DEV


def create_builder(ctx, manifest_path=None, target=None, release=False, profile=None,
                   example=None, target_dir=None, device_serial=None, args=()):
    """Build an ApkBuilder from the project options shared by every command."""
    cmd = Subcommand(
        manifest_path or default_manifest_path(ctx),
        profile=resolve_profile(release, profile),
        target=target,
        target_dir=target_dir,
        example=example,
        args=args,
    )
    return ApkBuilder.from_subcommand(cmd, device_serial=device_serial)
