"""
Read and write the configuration file.

Settings are read, in order of precedence, from the arguments given
to the Settings constructor, from the TOML configuration file
(mdnotes.toml in the current directory), and from environment
variables with the prefix MDNOTES_ (nested fields use '__', as in
MDNOTES_CHECKS__CHECK_EXTERNAL=true).
"""

from pathlib import Path
from typing import Any, Self

import tomlkit
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

DEFAULT_CONFIG_FILE = "mdnotes.toml"
ENV_PREFIX = "MDNOTES_"


def _clean_suffixes(values: list[str]) -> list[str]:
    cleaned: list[str] = []
    for value in values:
        value = value.strip().lower()
        if not value:
            raise ValueError("Empty file extension")
        cleaned.append(value if value.startswith('.') else '.' + value)
    return cleaned


class CorpusSettings(BaseModel):
    """
    Which files of the notes directory are notes and which are
    assets.

    Attributes:
        title: the title of the corpus, used in the index
        note_patterns: glob patterns of note files
        exclude_dirs: names of directories that are not scanned
        asset_extensions: extensions of image assets
        max_size_mb: notes larger than this are not loaded
        warn_size_mb: notes larger than this give a warning
    """

    title: str = Field(
        default="Study notes",
        description="Title of the corpus in the generated index",
    )
    note_patterns: list[str] = Field(
        default_factory=lambda: ["*.md", "*.markdown"],
        min_length=1,
        description="Glob patterns matched against note file names",
    )
    exclude_dirs: list[str] = Field(
        default_factory=lambda: [
            ".git",
            ".venv",
            "node_modules",
            "__pycache__",
            "_site",
        ],
        description="Directories skipped when scanning the corpus",
    )
    asset_extensions: list[str] = Field(
        default_factory=lambda: [
            ".png",
            ".jpg",
            ".jpeg",
            ".gif",
            ".svg",
            ".webp",
            ".bmp",
        ],
        description="Extensions of the image assets of the corpus",
    )
    max_size_mb: float = Field(
        default=50.0, description="Notes above this size are skipped"
    )
    warn_size_mb: float = Field(
        default=10.0, description="Notes above this size give a warning"
    )

    model_config = ConfigDict(frozen=True, extra='forbid')

    @field_validator('asset_extensions', mode='after')
    @classmethod
    def validate_extensions(cls, values: list[str]) -> list[str]:
        return _clean_suffixes(values)

    @field_validator('note_patterns', mode='after')
    @classmethod
    def validate_patterns(cls, values: list[str]) -> list[str]:
        patterns = [v.strip() for v in values]
        if any(not p for p in patterns):
            raise ValueError("Empty note pattern")
        if any('/' in p or '\\' in p for p in patterns):
            raise ValueError(
                "Note patterns match file names, not paths"
            )
        return patterns


class CheckSettings(BaseModel):
    """
    Content-integrity checks.

    Attributes:
        check_anchors: verify '#fragment' targets against headings
        report_orphans: report assets not referenced by any note
        check_external: probe external http(s) links
        external_timeout: timeout of each probe, in seconds
        external_workers: number of concurrent probes
        ignore_targets: targets (prefixes) never reported
        strict: warnings make the check fail
    """

    check_anchors: bool = True
    report_orphans: bool = True
    check_external: bool = False
    external_timeout: float = Field(default=10.0, gt=0)
    external_workers: int = Field(default=8, ge=1, le=64)
    ignore_targets: list[str] = Field(default_factory=list)
    strict: bool = False

    model_config = ConfigDict(frozen=True, extra='forbid')


class LoaderSettings(BaseModel):
    """
    Conversion of notes into documents.

    Attributes:
        chunk_size: maximum size of the text of a document; zero
            switches splitting off
        chunk_overlap: overlap of consecutive chunks
        include_code: include code blocks in the text of sections
    """

    chunk_size: int = Field(default=1000, ge=0)
    chunk_overlap: int = Field(default=200, ge=0)
    include_code: bool = True

    model_config = ConfigDict(frozen=True, extra='forbid')

    @model_validator(mode='after')
    def validate_overlap(self) -> Self:
        if self.chunk_size and self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller"
                f" than chunk_size ({self.chunk_size})"
            )
        return self


class IndexSettings(BaseModel):
    """
    Generation of the corpus index.

    Attributes:
        file_name: name of the index file, relative to the corpus root
        toc_depth: deepest heading level listed under each note
    """

    file_name: str = "index.md"
    toc_depth: int = Field(default=2, ge=0, le=6)

    model_config = ConfigDict(frozen=True, extra='forbid')


class Settings(BaseSettings):
    """
    A pydantic settings object with the configuration of the package.

    Settings are saved to and read from the configuration file in
    TOML format.
    """

    corpus: CorpusSettings = Field(default_factory=CorpusSettings)
    checks: CheckSettings = Field(default_factory=CheckSettings)
    loader: LoaderSettings = Field(default_factory=LoaderSettings)
    index: IndexSettings = Field(default_factory=IndexSettings)

    model_config = SettingsConfigDict(
        toml_file=DEFAULT_CONFIG_FILE,
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        frozen=True,
        extra='forbid',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize the order of settings sources."""
        return (
            init_settings,
            TomlConfigSettingsSource(settings_cls),
            env_settings,
        )


def serialize_settings(sets: BaseSettings) -> str:
    """Transform the settings into a string in TOML format."""
    doc = tomlkit.document()
    doc.add(tomlkit.comment("mdnotes configuration file"))
    doc.add(tomlkit.nl())

    data: dict[str, Any] = sets.model_dump()
    for key, value in data.items():
        if isinstance(value, dict):
            tbl = tomlkit.table()
            for kkey, vvalue in value.items():  # type: ignore
                # None cannot be serialized to TOML
                if vvalue is not None:
                    tbl[kkey] = vvalue
            doc[key] = tbl
        elif value is not None:
            doc[key] = value

    return tomlkit.dumps(doc)


def export_settings(
    settings: BaseSettings, file_path: str | Path | None = None
) -> None:
    """Save settings to file in TOML format.

    Raises:
        OSError: If file cannot be written
    """
    file_path = Path(file_path or DEFAULT_CONFIG_FILE)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(serialize_settings(settings), encoding="utf-8")


def create_default_config_file(
    file_path: str | Path | None = None,
) -> Path:
    """Write a configuration file with the default values, replacing
    the existing one.

    Returns:
        the path of the file
    """
    file_path = Path(file_path or DEFAULT_CONFIG_FILE)
    if file_path.exists():
        # otherwise, it would be read in
        file_path.unlink()

    # environment variables and a config file in the working
    # directory must not leak into the defaults
    export_settings(Settings.model_construct(), file_path)
    return file_path


def _file_settings_class(file_path: Path) -> type[Settings]:
    class FileSettings(Settings):
        model_config = SettingsConfigDict(
            toml_file=str(file_path),
            env_prefix=ENV_PREFIX,
            env_nested_delimiter="__",
            frozen=True,
            extra='forbid',
        )

    return FileSettings


def load_settings(file_path: str | Path | None = None) -> Settings:
    """Load settings from a TOML file.

    Args:
        file_path: Path to settings file (defaults to mdnotes.toml)

    Raises:
        FileNotFoundError: If settings file doesn't exist
        ValueError: If settings file is invalid
    """
    file_path = Path(file_path or DEFAULT_CONFIG_FILE)
    if not file_path.exists():
        raise FileNotFoundError(f"Settings file not found: {file_path}")

    try:
        return _file_settings_class(file_path)()
    except ValueError as e:
        raise ValueError(
            f"Failed to load settings from {file_path}: "
            + format_pydantic_error_message(str(e))
        ) from e


def format_pydantic_error_message(error_message: str) -> str:
    """Filter out the help lines from pydantic error messages."""
    return '\n'.join(
        line
        for line in error_message.split('\n')
        if "For further information visit" not in line
    )
