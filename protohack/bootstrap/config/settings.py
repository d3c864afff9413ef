from typing import Annotated

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict, PydanticBaseSettingsSource, YamlConfigSettingsSource

from protohack.bootstrap.config.loader import get_configfile


class ServerSettings(BaseModel):
    host: Annotated[
        str,
        Field(
            description="Bind address for client connections.",
            default="0.0.0.0"
        )
    ]

    port: Annotated[
        int,
        Field(
            description="TCP port for client connections. 0 lets the OS choose.",
            default=50000,
            ge=0,
            le=65535,
        )
    ]

    backlog: Annotated[
        int,
        Field(
            description="Maximum number of pending TCP connections.",
            default=128,
            gt=0,
        )
    ]

    max_buffer_size: Annotated[
        int,
        Field(
            description=(
                "Maximum size in bytes of a single pending frame.\n"
                "A client exceeding it without completing a frame is disconnected."
            ),
            default=1024 * 1024,
            gt=0,
        )
    ]

    max_pending_frames: Annotated[
        int,
        Field(
            description=(
                "Maximum number of complete frames queued per connection.\n"
                "Reading from the client pauses until the queue drains."
            ),
            default=128,
            gt=0,
        )
    ]

    timeout_graceful_shutdown: Annotated[
        float,
        Field(
            description="Maximum time allowed for graceful shutdown.",
            default=5.0,
            ge=0,
        )
    ]


class ProtohackConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PROTOHACK_",
        env_nested_delimiter="__",
        extra="ignore"
    )

    solution: Annotated[
        str,
        Field(
            description=(
                "Name of the protocol served on every connection.\n"
                "One of: prime-time, means-to-an-end."
            ),
            default="prime-time"
        )
    ]

    server: Annotated[
        ServerSettings,
        Field(
            description=(
                "Local server configuration.\n"
                "Controls how the server listens for incoming TCP connections\n"
                "and applies runtime limits such as frame size and graceful\n"
                "shutdown behavior."
            ),
            default_factory=ServerSettings
        )
    ]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = [init_settings, env_settings]

        configfile = get_configfile()
        if configfile is not None:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=configfile))

        return tuple(sources)
