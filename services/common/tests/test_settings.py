"""
Tests for the shared BaseSettings loader.
"""

from typing import List, Optional

import pytest

from services.common.settings import (
    AliasChoices,
    BaseSettings,
    Field,
    SettingsConfigDict,
)


class ExampleSettings(BaseSettings):
    api_port: int = Field(
        default=8000,
        validation_alias=AliasChoices("EXAMPLE_API_PORT", "PORT"),
    )
    cache_enabled: bool = Field(default=True)
    ratio: float = 0.5
    tags: List[str] = []
    region: Optional[str] = None

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")


class RequiredSettings(BaseSettings):
    db_url: str = Field(..., validation_alias=AliasChoices("DB_URL_EXAMPLE"))


class TestAliasChoices:
    def test_choices_are_kept_in_order(self):
        choices = AliasChoices("choice1", "choice2", "choice3")
        assert choices.choices == ["choice1", "choice2", "choice3"]

    def test_empty(self):
        assert AliasChoices().choices == []


class TestBaseSettings:
    def setup_method(self):
        self.env_names = [
            "EXAMPLE_API_PORT",
            "PORT",
            "CACHE_ENABLED",
            "RATIO",
            "TAGS",
            "REGION",
            "DB_URL_EXAMPLE",
        ]

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in self.env_names:
            monkeypatch.delenv(name, raising=False)
        self.monkeypatch = monkeypatch

    def test_defaults(self):
        settings = ExampleSettings()

        assert settings.api_port == 8000
        assert settings.cache_enabled is True
        assert settings.ratio == 0.5
        assert settings.region is None

    def test_first_alias_wins(self):
        self.monkeypatch.setenv("PORT", "9000")
        self.monkeypatch.setenv("EXAMPLE_API_PORT", "8123")

        assert ExampleSettings().api_port == 8123

    def test_fallback_alias(self):
        self.monkeypatch.setenv("PORT", "9000")

        assert ExampleSettings().api_port == 9000

    def test_type_conversion(self):
        self.monkeypatch.setenv("CACHE_ENABLED", "false")
        self.monkeypatch.setenv("RATIO", "0.25")
        self.monkeypatch.setenv("TAGS", "a, b,,c")
        self.monkeypatch.setenv("REGION", "eu")

        settings = ExampleSettings()

        assert settings.cache_enabled is False
        assert settings.ratio == 0.25
        assert settings.tags == ["a", "b", "c"]
        assert settings.region == "eu"

    def test_json_list(self):
        self.monkeypatch.setenv("TAGS", '["x", "y"]')

        assert ExampleSettings().tags == ["x", "y"]

    def test_keyword_arguments_override_environment(self):
        self.monkeypatch.setenv("EXAMPLE_API_PORT", "8123")

        assert ExampleSettings(api_port=1).api_port == 1

    def test_required_field(self):
        with pytest.raises(ValueError, match="db_url"):
            RequiredSettings()

        self.monkeypatch.setenv("DB_URL_EXAMPLE", "sqlite://")
        assert RequiredSettings().db_url == "sqlite://"

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text('# comment\nEXAMPLE_API_PORT="7000"\nREGION=us\n')

        class FileSettings(ExampleSettings):
            model_config = SettingsConfigDict(env_file=str(env_file), case_sensitive=False)

        self.monkeypatch.setenv("REGION", "eu")
        settings = FileSettings()

        assert settings.api_port == 7000
        # Process environment wins over the .env file
        assert settings.region == "eu"

    def test_model_dump(self):
        dumped = ExampleSettings(region="ap").model_dump()

        assert dumped["region"] == "ap"
        assert "model_config" not in dumped
