"""In-memory ``AndroidManifest.xml`` and the rules that fill in its defaults.

The model mirrors the manifest elements documented at
https://developer.android.com/guide/topics/manifest/manifest-element and is
populated from ``[package.metadata.android]`` in ``Cargo.toml``. Defaulting is
split in two pure steps: ``initialize_manifest`` runs once per build and
``finalize_for_artifact`` once per packaged artifact. Both return new objects.
"""
import copy
import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, fields, replace
from typing import List, Optional

from .errors import IoPathError, ManifestError
from .subcommand import Example
from .version import version_code

ANDROID_NAMESPACE = "http://schemas.android.com/apk/res/android"
NATIVE_ACTIVITY = "android.app.NativeActivity"
FULLSCREEN_THEME = "@android:style/Theme.DeviceDefault.NoActionBar.Fullscreen"
MAIN_ACTION = "android.intent.action.MAIN"
LAUNCHER_CATEGORY = "android.intent.category.LAUNCHER"
LIB_NAME_METADATA = "android.app.lib_name"
DEFAULT_NAMESPACE = "rust"

MIN_SDK_VERSION = 23
# From this level on, an activity without android:exported cannot be launched.
EXPORTED_REQUIRED_SDK_VERSION = 31
VERSION_CODE_SLOT = 1


def effective_min_sdk_version(min_sdk_version):
    """Clamp the configured minimum API level to the lowest level the NDK toolchain supports."""
    if min_sdk_version is None:
        return MIN_SDK_VERSION
    return max(min_sdk_version, MIN_SDK_VERSION)


def _from_table(cls, table, context):
    """Build dataclass ``cls`` from a TOML table, rejecting unknown keys."""
    if table is None:
        return cls()
    if not isinstance(table, dict):
        raise ManifestError(f"[{context}] must be a table.")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(table) - known)
    if unknown:
        raise ManifestError(f"Unknown key(s) in [{context}]: {', '.join(unknown)}")
    return cls(**table)


def _list_from_tables(cls, tables, context):
    if tables is None:
        return []
    if not isinstance(tables, list):
        raise ManifestError(f"[[{context}]] must be an array of tables.")
    return [_from_table(cls, table, context) for table in tables]


def _bool(value):
    return "true" if value else "false"


@dataclass
class MetaData:
    name: str = ""
    value: str = ""

    def to_element(self):
        return ET.Element("meta-data", {"android:name": self.name, "android:value": str(self.value)})


@dataclass
class IntentFilterData:
    scheme: Optional[str] = None
    host: Optional[str] = None
    port: Optional[str] = None
    path: Optional[str] = None
    path_pattern: Optional[str] = None
    path_prefix: Optional[str] = None
    mime_type: Optional[str] = None

    def to_element(self):
        attributes = {
            "android:scheme": self.scheme,
            "android:host": self.host,
            "android:port": self.port,
            "android:path": self.path,
            "android:pathPattern": self.path_pattern,
            "android:pathPrefix": self.path_prefix,
            "android:mimeType": self.mime_type,
        }
        return ET.Element("data", {k: str(v) for k, v in attributes.items() if v is not None})


@dataclass
class IntentFilter:
    actions: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    data: List[IntentFilterData] = field(default_factory=list)

    @classmethod
    def from_table(cls, table):
        intent_filter = _from_table(cls, table, "package.metadata.android.application.activity.intent_filter")
        intent_filter.data = _list_from_tables(IntentFilterData, intent_filter.data, "intent_filter.data")
        return intent_filter

    def to_element(self):
        element = ET.Element("intent-filter")
        for action in self.actions:
            ET.SubElement(element, "action", {"android:name": action})
        for category in self.categories:
            ET.SubElement(element, "category", {"android:name": category})
        for data in self.data:
            element.append(data.to_element())
        return element


@dataclass
class Activity:
    config_changes: Optional[str] = "orientation|keyboardHidden|screenSize"
    label: Optional[str] = None
    launch_mode: Optional[str] = None
    name: str = NATIVE_ACTIVITY
    orientation: Optional[str] = None
    exported: Optional[bool] = None
    resizeable_activity: Optional[bool] = None
    meta_data: List[MetaData] = field(default_factory=list)
    intent_filter: List[IntentFilter] = field(default_factory=list)

    @classmethod
    def from_table(cls, table):
        activity = _from_table(cls, table, "package.metadata.android.application.activity")
        activity.meta_data = _list_from_tables(MetaData, activity.meta_data, "activity.meta_data")
        activity.intent_filter = [IntentFilter.from_table(t) for t in activity.intent_filter or []]
        return activity

    def has_main_action(self):
        return any(MAIN_ACTION in intent_filter.actions for intent_filter in self.intent_filter)

    def to_element(self):
        attributes = {
            "android:configChanges": self.config_changes,
            "android:label": self.label,
            "android:launchMode": self.launch_mode,
            "android:name": self.name,
            "android:screenOrientation": self.orientation,
        }
        element = ET.Element("activity", {k: v for k, v in attributes.items() if v is not None})
        if self.exported is not None:
            element.set("android:exported", _bool(self.exported))
        if self.resizeable_activity is not None:
            element.set("android:resizeableActivity", _bool(self.resizeable_activity))
        for meta_data in self.meta_data:
            element.append(meta_data.to_element())
        for intent_filter in self.intent_filter:
            element.append(intent_filter.to_element())
        return element


@dataclass
class Application:
    debuggable: Optional[bool] = None
    theme: Optional[str] = None
    fullscreen: bool = False
    has_code: bool = False
    icon: Optional[str] = None
    label: Optional[str] = None
    extract_native_libs: Optional[bool] = None
    uses_cleartext_traffic: Optional[bool] = None
    meta_data: List[MetaData] = field(default_factory=list)
    activity: Activity = field(default_factory=Activity)

    @classmethod
    def from_table(cls, table):
        application = _from_table(cls, table, "package.metadata.android.application")
        application.meta_data = _list_from_tables(MetaData, application.meta_data, "application.meta_data")
        activity = application.activity
        application.activity = activity if isinstance(activity, Activity) else Activity.from_table(activity)
        return application

    def to_element(self):
        element = ET.Element("application", {"android:hasCode": _bool(self.has_code)})
        if self.debuggable is not None:
            element.set("android:debuggable", _bool(self.debuggable))
        theme = self.theme or (FULLSCREEN_THEME if self.fullscreen else None)
        if theme:
            element.set("android:theme", theme)
        if self.icon:
            element.set("android:icon", self.icon)
        if self.label is not None:
            element.set("android:label", self.label)
        if self.extract_native_libs is not None:
            element.set("android:extractNativeLibs", _bool(self.extract_native_libs))
        if self.uses_cleartext_traffic is not None:
            element.set("android:usesCleartextTraffic", _bool(self.uses_cleartext_traffic))
        for meta_data in self.meta_data:
            element.append(meta_data.to_element())
        element.append(self.activity.to_element())
        return element


@dataclass
class Feature:
    name: Optional[str] = None
    required: Optional[bool] = None
    version: Optional[int] = None
    opengles_version: Optional[List[int]] = None

    def to_element(self):
        element = ET.Element("uses-feature")
        if self.name:
            element.set("android:name", self.name)
        if self.required is not None:
            element.set("android:required", _bool(self.required))
        if self.version is not None:
            element.set("android:version", str(self.version))
        if self.opengles_version:
            major, minor = self.opengles_version
            element.set("android:glEsVersion", f"0x{major:04}{minor:04}")
        return element


@dataclass
class Permission:
    name: str = ""
    max_sdk_version: Optional[int] = None

    def to_element(self):
        element = ET.Element("uses-permission", {"android:name": self.name})
        if self.max_sdk_version is not None:
            element.set("android:maxSdkVersion", str(self.max_sdk_version))
        return element


@dataclass
class Sdk:
    min_sdk_version: Optional[int] = MIN_SDK_VERSION
    target_sdk_version: Optional[int] = None
    max_sdk_version: Optional[int] = None

    def to_element(self):
        attributes = {
            "android:minSdkVersion": self.min_sdk_version,
            "android:targetSdkVersion": self.target_sdk_version,
            "android:maxSdkVersion": self.max_sdk_version,
        }
        return ET.Element("uses-sdk", {k: str(v) for k, v in attributes.items() if v is not None})


@dataclass
class AndroidManifest:
    package: Optional[str] = None
    shared_user_id: Optional[str] = None
    version_code: Optional[int] = None
    version_name: Optional[str] = None
    split: Optional[str] = None
    sdk: Sdk = field(default_factory=Sdk)
    uses_feature: List[Feature] = field(default_factory=list)
    uses_permission: List[Permission] = field(default_factory=list)
    application: Application = field(default_factory=Application)

    @classmethod
    def from_table(cls, table):
        """Parse the manifest keys of ``[package.metadata.android]``."""
        table = dict(table or {})
        sdk = _from_table(Sdk, table.pop("sdk", None), "package.metadata.android.sdk")
        features = _list_from_tables(Feature, table.pop("uses_feature", None), "package.metadata.android.uses_feature")
        permissions = _list_from_tables(Permission, table.pop("uses_permission", None), "package.metadata.android.uses_permission")
        application = Application.from_table(table.pop("application", None))
        manifest = _from_table(cls, table, "package.metadata.android")
        return replace(
            manifest,
            sdk=sdk,
            uses_feature=features,
            uses_permission=permissions,
            application=application,
        )

    def to_element(self):
        element = ET.Element("manifest", {"xmlns:android": ANDROID_NAMESPACE})
        if self.package:
            element.set("package", self.package)
        if self.shared_user_id:
            element.set("android:sharedUserId", self.shared_user_id)
        if self.version_code is not None:
            element.set("android:versionCode", str(self.version_code))
        if self.version_name is not None:
            element.set("android:versionName", self.version_name)
        if self.split:
            element.set("split", self.split)
        element.append(self.sdk.to_element())
        for feature in self.uses_feature:
            element.append(feature.to_element())
        for permission in self.uses_permission:
            element.append(permission.to_element())
        element.append(self.application.to_element())
        return element

    def to_xml(self):
        element = self.to_element()
        ET.indent(element, space="    ")
        body = ET.tostring(element, encoding="unicode")
        return f'<?xml version="1.0" encoding="utf-8"?>\n{body}\n'

    def write_to(self, directory):
        path = os.path.join(directory, "AndroidManifest.xml")
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(self.to_xml())
        except OSError as e:
            raise IoPathError(path, e) from e
        return path


# -------------------- Defaulting --------------------

def initialize_manifest(manifest, version, ndk, profile):
    """Apply the build-wide defaults to a copy of the user's manifest.

    ``version`` is the crate version; the version name and code are derived
    from it, so a manifest that already sets either is rejected.
    """
    if manifest.version_name is not None:
        raise ManifestError("Failed to parse manifest: `version_name` should not be set, it is derived from the crate version.")
    if manifest.version_code is not None:
        raise ManifestError("Failed to parse manifest: `version_code` should not be set, it is derived from the crate version.")

    manifest = copy.deepcopy(manifest)
    manifest.version_name = version
    manifest.version_code = version_code(version, VERSION_CODE_SLOT)

    if manifest.sdk.target_sdk_version is None:
        manifest.sdk.target_sdk_version = ndk.highest_supported_platform()

    application = manifest.application
    if application.debuggable is None:
        application.debuggable = profile.is_dev

    activity = application.activity
    # Scan actions rather than counting filters so a second pass adds nothing.
    if not activity.has_main_action():
        activity.intent_filter.append(
            IntentFilter(actions=[MAIN_ACTION], categories=[LAUNCHER_CATEGORY])
        )

    if activity.exported is None and manifest.sdk.target_sdk_version >= EXPORTED_REQUIRED_SDK_VERSION:
        activity.exported = True

    return manifest


def finalize_for_artifact(manifest, artifact, namespace=DEFAULT_NAMESPACE):
    """Fill in the per-artifact fields on a copy of an initialized manifest."""
    manifest = copy.deepcopy(manifest)
    if manifest.package is None:
        if isinstance(artifact, Example):
            manifest.package = f"{namespace}.example.{artifact.lib_name}"
        else:
            manifest.package = f"{namespace}.{artifact.lib_name}"

    if manifest.application.label is None:
        manifest.application.label = artifact.name

    # Must match the library cargo produces, NativeActivity loads it by this name.
    manifest.application.activity.meta_data.append(
        MetaData(name=LIB_NAME_METADATA, value=artifact.lib_name)
    )
    return manifest
