"""Entrypoint: run the augmentation orchestrator server.

The host supplies the concrete augmentation provider and generation
backends through ``AUGMENT_COMPONENTS_FACTORY``, a ``"package.module:function"``
path. The function receives the settings and returns ``(provider, backends)``.
"""

from __future__ import annotations

import importlib

import uvicorn

from augment_engine.api.app import create_app
from augment_engine.config.settings import Settings
from augment_engine.exceptions import ConfigurationError
from augment_engine.protocols.augmentation import AugmentationProvider
from augment_engine.protocols.generation import GenerationBackend


def load_components(
    path: str, settings: Settings
) -> tuple[AugmentationProvider, dict[str, GenerationBackend]]:
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ConfigurationError(
            "AUGMENT_COMPONENTS_FACTORY must look like 'package.module:function'"
        )
    try:
        factory = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot load components factory {path!r}: {e}") from e
    return factory(settings)


def main() -> None:
    settings = Settings()
    provider, backends = load_components(settings.components_factory, settings)
    app = create_app(provider, backends, settings)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
