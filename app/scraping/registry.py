"""
Extractor class registry and roster factory.
"""

from __future__ import annotations

import importlib
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

import requests

from app.config import ScrapeSchedulerSettings, VisionSettings
from app.scraping.base import Extractor, SelectorExtractor
from app.scraping.config.models import ExtractorConfig
from app.scraping.extractors import ConfigurableSelectorExtractor, PageVisionExtractor
from app.scraping.types import ExtractorDescriptor
from app.scraping.vision import (
    BasePageCapture,
    BaseVisionAdapter,
    MockVisionAdapter,
    OpenAIVisionAdapter,
    PlaywrightPageCapture,
)


def build_vision_adapter(settings: VisionSettings) -> BaseVisionAdapter:
    if settings.adapter == "mock":
        return MockVisionAdapter()
    return OpenAIVisionAdapter(
        model=settings.model,
        max_tokens=settings.max_tokens,
        api_key=settings.api_key,
        base_url=settings.base_url,
    )


@dataclass
class ExtractorDependencies:
    """
    Shared collaborators handed to extractors at construction.

    The vision adapter and page capture are created on first use so a roster
    without vision entries needs no model credentials.
    """

    scheduler_settings: ScrapeSchedulerSettings
    vision_settings: VisionSettings
    session: requests.Session = field(default_factory=requests.Session)
    vision_adapter: BaseVisionAdapter | None = None
    page_capture: BasePageCapture | None = None

    def get_vision_adapter(self) -> BaseVisionAdapter:
        if self.vision_adapter is None:
            self.vision_adapter = build_vision_adapter(self.vision_settings)
        return self.vision_adapter

    def get_page_capture(self) -> BasePageCapture:
        if self.page_capture is None:
            self.page_capture = PlaywrightPageCapture(
                user_agent=self.scheduler_settings.user_agent,
                viewport_width=self.vision_settings.viewport_width,
                viewport_height=self.vision_settings.viewport_height,
            )
        return self.page_capture


class ExtractorRegistry:
    """
    Extractor registry supporting built-ins and dynamic import paths.
    """

    def __init__(self, registrations: Mapping[str, type[Extractor]] | None = None) -> None:
        builtins: dict[str, type[Extractor]] = {
            "selector": ConfigurableSelectorExtractor,
            "vision": PageVisionExtractor,
        }
        if registrations:
            builtins.update(registrations)
        self._registrations = builtins

    def register(self, *, extractor_type: str, extractor_class: type[Extractor]) -> None:
        self._registrations[extractor_type.strip().lower()] = extractor_class

    def create_extractor(
        self,
        *,
        config: ExtractorConfig,
        dependencies: ExtractorDependencies,
    ) -> Extractor:
        extractor_class = self._resolve_extractor_class(config)
        if issubclass(extractor_class, SelectorExtractor):
            return extractor_class(
                config=config,
                settings=dependencies.scheduler_settings,
                session=dependencies.session,
            )
        if issubclass(extractor_class, PageVisionExtractor):
            return extractor_class(
                config=config,
                adapter=dependencies.get_vision_adapter(),
                capture=dependencies.get_page_capture(),
                settings=dependencies.vision_settings,
            )
        return extractor_class(name=config.name)

    def build_roster(
        self,
        *,
        configs: Sequence[ExtractorConfig],
        dependencies: ExtractorDependencies,
        only: Sequence[str] | None = None,
    ) -> list[ExtractorDescriptor]:
        """
        Build descriptors for enabled entries, keeping roster order.

        ``only`` narrows the roster to the given extractor names.
        """

        selected = {name.strip().lower() for name in only or [] if name.strip()}
        settings = dependencies.scheduler_settings
        roster: list[ExtractorDescriptor] = []
        for config in configs:
            if not config.enabled:
                continue
            if selected and config.name.lower() not in selected:
                continue
            extractor = self.create_extractor(config=config, dependencies=dependencies)
            if extractor.variant != config.variant:
                raise ValueError(
                    f"Extractor '{config.name}' is configured as '{config.variant}' but "
                    f"{type(extractor).__name__} is a '{extractor.variant}' extractor."
                )
            roster.append(
                ExtractorDescriptor(
                    name=config.name,
                    variant=config.variant,
                    max_records=config.max_records or settings.default_max_records,
                    timeout_ms=config.timeout_ms or settings.default_timeout_ms,
                    extractor=extractor,
                )
            )
        return roster

    def _resolve_extractor_class(self, config: ExtractorConfig) -> type[Extractor]:
        if config.extractor_class:
            return self._load_dynamic_class(config.extractor_class)

        resolved = self._registrations.get(config.extractor_type)
        if resolved is None:
            allowed = ", ".join(sorted(self._registrations.keys()))
            raise ValueError(
                f"Unknown extractor_type='{config.extractor_type}' for extractor='{config.name}'. "
                f"Allowed types: {allowed}."
            )
        return resolved

    @staticmethod
    def _load_dynamic_class(path: str) -> type[Extractor]:
        if ":" not in path:
            raise ValueError(f"Invalid extractor_class '{path}'. Use 'module.path:ClassName'.")

        module_path, class_name = path.split(":", 1)
        module = importlib.import_module(module_path)
        loaded = getattr(module, class_name, None)
        if loaded is None:
            raise ValueError(f"Unable to resolve extractor class '{path}'.")
        if not isinstance(loaded, type) or not issubclass(loaded, Extractor):
            raise ValueError(f"Class '{path}' must inherit from Extractor.")
        return loaded
