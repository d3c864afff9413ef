import asyncio
import os
from dataclasses import dataclass

from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, YamlConfigSettingsSource

from protohack.bootstrap.config.settings import ProtohackConfig


@dataclass
class LineClient:
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter

    @classmethod
    async def connect(cls, host: str, port: int) -> "LineClient":
        reader, writer = await asyncio.open_connection(host, port)
        return cls(reader=reader, writer=writer)

    async def request(self, line: bytes) -> bytes:
        self.writer.write(line)
        await self.writer.drain()
        return await asyncio.wait_for(self.reader.readline(), timeout=5)

    async def close(self) -> None:
        self.writer.close()
        await self.writer.wait_closed()


class FakeProtohackConfig(ProtohackConfig):
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=os.environ["TEST_PROTOHACK_CONFIG"]),
        )
