"""
Pydantic models for variable-sharing configuration documents.

A project declares its variable-sharing tasks in a JSON document
(``cli-config-*.json`` or ``redis*.json``). Each task names a source
backend, a target backend, and a mapping from source variable names to
one or more target naming strategies::

    {
      "version": "1.0.0",
      "tasks": [
        {
          "source": {"type": "AzureKeyvault", "url": "https://kv1", "secretType": "secret"},
          "target": {"type": "Redis", "hostname": "cache.internal"},
          "mapping": {
            "DB_PASSWORD": ["DB_PASSWORD", {"key": "PG_PASS"},
                            {"key": "PG_PASS_B64", "function": "base64"}]
          }
        }
      ]
    }

Source and target backends are closed sets of variants discriminated by
the ``type`` key. Mapping targets are untagged and decoded in a fixed
order, see ``MAPPING_TARGET_DECODERS``.
"""

from __future__ import annotations

import json
import re
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Callable, Dict, List, Literal, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    PlainValidator,
    StrictInt,
    ValidationError,
    field_validator,
)

# Semantic Versioning 2.0.0, https://semver.org
SEMVER_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)

U64_MAX = 2**64 - 1


class SchemaError(ValueError):
    """A configuration document does not match the schema.

    Attributes:
        path: Dotted location of the offending field (``tasks.0.source.url``).
        message: What was wrong with it.
        errors: All validation errors, when more than one was found.
    """

    def __init__(self, path: str, message: str, errors: Optional[List[Any]] = None) -> None:
        self.path = path
        self.message = message
        self.errors = errors or []
        super().__init__(f"{path}: {message}")


class _WireModel(BaseModel):
    """Base for every schema model: immutable, tolerant of unknown keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Shared backend configs
# ---------------------------------------------------------------------------


class SecretType(str, Enum):
    """Kind of object stored in an Azure Key Vault."""

    SECRET = "secret"
    CERTIFICATE = "certificate"


class AzureKeyvaultConfig(_WireModel):
    """An Azure Key Vault.

    ``keyvault_url`` is compared verbatim when matching projects; no case
    folding or trailing-slash normalization is applied.
    """

    keyvault_url: str = Field(alias="url")
    secret_type: SecretType = Field(alias="secretType")


class GitlabProjectConfig(_WireModel):
    """A remote GitLab project, optionally scoped to an environment."""

    project_id: StrictInt = Field(ge=0, le=U64_MAX)
    environment: Optional[str] = None
    token_variable_name: Optional[str] = Field(default=None, alias="tokenVariableName")
    url: Optional[str] = None


class GitlabProjectVariableDetails(_WireModel):
    """Flags applied to CI/CD variables written to a GitLab project."""

    protected_variables: Optional[List[str]] = None
    masked_variables: Optional[List[str]] = None
    files: Optional[List[str]] = None


class TerraformFileFormat(str, Enum):
    OUTPUT_JSON = "OutputJson"
    STATE = "State"


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


class EnvironmentSource(_WireModel):
    type: Literal["Environment"] = "Environment"


class TerraformFileSource(_WireModel):
    type: Literal["TerraformFile"] = "TerraformFile"
    file_name: Path
    file_format: TerraformFileFormat

    @classmethod
    def with_defaults(cls) -> TerraformFileSource:
        """The conventional terraform output: ``tfoutput.json`` in OutputJson format."""
        return cls(file_name=Path("tfoutput.json"), file_format=TerraformFileFormat.OUTPUT_JSON)


class GitlabProjectTerraformStateSource(GitlabProjectConfig):
    type: Literal["GitlabProjectTerraformState"] = "GitlabProjectTerraformState"


class GitlabProjectVariablesSource(GitlabProjectConfig):
    type: Literal["GitlabProjectVariables"] = "GitlabProjectVariables"


class EnvFileSource(_WireModel):
    type: Literal["EnvFile"] = "EnvFile"
    file: Path


class AzureKeyvaultSource(AzureKeyvaultConfig):
    type: Literal["AzureKeyvault"] = "AzureKeyvault"


class HardCodedSource(_WireModel):
    type: Literal["HardCoded"] = "HardCoded"
    variables: Dict[str, str]


class RedisSource(_WireModel):
    type: Literal["Redis"] = "Redis"
    hostname: str
    sp_object_id: Optional[str] = None


SourceConfig = Annotated[
    Union[
        EnvironmentSource,
        TerraformFileSource,
        GitlabProjectTerraformStateSource,
        GitlabProjectVariablesSource,
        EnvFileSource,
        AzureKeyvaultSource,
        HardCodedSource,
        RedisSource,
    ],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Targets
# ---------------------------------------------------------------------------


class CommandTarget(_WireModel):
    type: Literal["Command"] = "Command"


class ProcessEnvironmentTarget(_WireModel):
    type: Literal["ProcessEnvironment"] = "ProcessEnvironment"


class AzureKeyvaultTarget(AzureKeyvaultConfig):
    type: Literal["AzureKeyvault"] = "AzureKeyvault"


class GlobalEnvironmentTarget(_WireModel):
    type: Literal["GlobalEnvironment"] = "GlobalEnvironment"


class StdOutEnvironmentTarget(_WireModel):
    type: Literal["StdOutEnvironment"] = "StdOutEnvironment"


class EnvFileTarget(_WireModel):
    type: Literal["EnvFile"] = "EnvFile"
    file: Path


class FileTarget(_WireModel):
    type: Literal["File"] = "File"


class KubeConfigTarget(_WireModel):
    type: Literal["KubeConfig"] = "KubeConfig"


class GitlabProjectVariablesTarget(_WireModel):
    type: Literal["GitlabProjectVariables"] = "GitlabProjectVariables"
    config: GitlabProjectConfig
    details: Optional[GitlabProjectVariableDetails] = None


class RedisTarget(_WireModel):
    type: Literal["Redis"] = "Redis"
    hostname: str
    sp_object_id: Optional[str] = None


TargetConfig = Annotated[
    Union[
        CommandTarget,
        ProcessEnvironmentTarget,
        AzureKeyvaultTarget,
        GlobalEnvironmentTarget,
        StdOutEnvironmentTarget,
        EnvFileTarget,
        FileTarget,
        KubeConfigTarget,
        GitlabProjectVariablesTarget,
        RedisTarget,
    ],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Mapping targets
# ---------------------------------------------------------------------------


class KeyOnly(_WireModel):
    """Target variable named by a bare string: ``"DB_PASSWORD"``."""

    name: str


class CopyMapping(_WireModel):
    """Target variable copied under another key: ``{"key": "PG_PASS"}``."""

    key: str


class ConvertMapping(_WireModel):
    """Target variable passed through a named transform first.

    ``{"key": "PG_PASS_B64", "function": "base64"}``
    """

    key: str
    function: str


def _decode_key_only(raw: Any) -> KeyOnly:
    if not isinstance(raw, str):
        raise ValueError("not a variable name")
    return KeyOnly(name=raw)


# Tried in order, first success wins. ConvertMapping must come before
# CopyMapping, which also accepts {"key", "function"} objects.
MAPPING_TARGET_DECODERS: Tuple[Callable[[Any], Any], ...] = (
    ConvertMapping.model_validate,
    CopyMapping.model_validate,
    _decode_key_only,
)


def decode_mapping_target(raw: Any) -> Union[ConvertMapping, CopyMapping, KeyOnly]:
    """Decode one raw mapping target using ``MAPPING_TARGET_DECODERS``.

    Raises:
        ValueError: If no decoder accepts the value.
    """
    if isinstance(raw, (ConvertMapping, CopyMapping, KeyOnly)):
        return raw
    for decode in MAPPING_TARGET_DECODERS:
        try:
            return decode(raw)
        except ValueError:
            continue
    raise ValueError(
        "expected a variable name, a {key} object or a {key, function} object, "
        f"got {raw!r}"
    )


def encode_mapping_target(target: Union[ConvertMapping, CopyMapping, KeyOnly]) -> Any:
    """Inverse of ``decode_mapping_target``."""
    if isinstance(target, KeyOnly):
        return target.name
    return target.model_dump(by_alias=True, mode="json")


MappingTarget = Annotated[
    Union[ConvertMapping, CopyMapping, KeyOnly],
    PlainValidator(decode_mapping_target),
    PlainSerializer(encode_mapping_target),
]


def canonical_key(target: Union[ConvertMapping, CopyMapping, KeyOnly]) -> str:
    """The variable name a mapping target writes to."""
    if isinstance(target, KeyOnly):
        return target.name
    if isinstance(target, (CopyMapping, ConvertMapping)):
        return target.key
    raise TypeError(f"Unknown mapping target: {type(target).__name__}")


# ---------------------------------------------------------------------------
# Top level
# ---------------------------------------------------------------------------


class Task(_WireModel):
    """One source → target variable-sharing rule."""

    source: SourceConfig
    target: TargetConfig
    mapping: Dict[str, List[MappingTarget]]

    def source_keys(self) -> List[str]:
        """Variable names read from the source."""
        return list(self.mapping)

    def target_keys(self) -> List[str]:
        """Variable names written to the target, flattened over all mappings."""
        return [canonical_key(t) for targets in self.mapping.values() for t in targets]

    def describe(self) -> str:
        """One-line summary for logs and terminal output."""
        keys = ", ".join(sorted(self.mapping)) or "-"
        return f"{self.source.type} [{keys}] -> {self.target.type}"


class VariableShareConfig(_WireModel):
    """The full contents of one project's sharing document."""

    version: str
    tasks: List[Task]

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v: Any) -> str:
        """Require a Semantic Versioning 2.0 string."""
        if not isinstance(v, str) or not SEMVER_PATTERN.match(v):
            raise ValueError(f"Invalid semantic version: {v!r}")
        return v

    @property
    def version_info(self) -> Tuple[int, int, int]:
        """``(major, minor, patch)`` of ``version``."""
        return parse_version(self.version)


def parse_version(version: str) -> Tuple[int, int, int]:
    """Split a semantic version string into its numeric core.

    Raises:
        ValueError: If the string is not a semantic version.
    """
    match = SEMVER_PATTERN.match(version)
    if not match:
        raise ValueError(f"Invalid semantic version: {version!r}")
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


# ---------------------------------------------------------------------------
# (De)serialization
# ---------------------------------------------------------------------------


def _error_path(loc: Tuple[Union[str, int], ...]) -> str:
    return ".".join(str(part) for part in loc) or "<document>"


def _schema_error(exc: ValidationError) -> SchemaError:
    errors = exc.errors()
    first = errors[0]
    return SchemaError(_error_path(first["loc"]), first["msg"], errors)


def parse_config(data: Any) -> VariableShareConfig:
    """Validate an already-decoded JSON document.

    Args:
        data: The document, typically a dict from ``json.loads``.

    Returns:
        The parsed configuration.

    Raises:
        SchemaError: Naming the path of the first offending field.
    """
    try:
        return VariableShareConfig.model_validate(data)
    except ValidationError as exc:
        raise _schema_error(exc) from exc


def parse_config_json(text: Union[str, bytes]) -> VariableShareConfig:
    """Parse JSON text into a configuration.

    Raises:
        SchemaError: On malformed JSON or a schema violation.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SchemaError("<document>", f"invalid JSON: {exc}") from exc
    return parse_config(data)


def dump_config(config: VariableShareConfig) -> Dict[str, Any]:
    """Serialize a configuration back into its wire form."""
    return config.model_dump(by_alias=True, mode="json")
