"""
llm-gateway: Ordered backend registry.

The registry is built once: remote backends in the order their configuration
keys were declared, followed by local fallback backends in their configured
order. Filtering by kind never reorders.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from typing import TYPE_CHECKING

from llm_gateway.backends.ollama import OllamaBackend
from llm_gateway.backends.openai import PRESETS, LMStudioBackend, OpenAICompatibleBackend
from llm_gateway.config import ProviderConfig
from llm_gateway.errors import GatewayError
from llm_gateway.models import BackendKind

if TYPE_CHECKING:
    from llm_gateway.backends.base import Backend
    from llm_gateway.config import GatewayConfig

logger = logging.getLogger(__name__)

BackendFactory = Callable[[str, ProviderConfig], "Backend"]


def _preset_factory(name: str, config: ProviderConfig) -> Backend:
    return OpenAICompatibleBackend.from_preset(
        name,
        api_key=config.api_key,
        base_url=config.base_url,
        models=config.models or None,
    )


def _ollama_factory(name: str, config: ProviderConfig) -> Backend:
    kwargs = {}
    if config.base_url:
        kwargs["base_url"] = config.base_url
    if config.models:
        kwargs["models"] = config.models
    return OllamaBackend(**kwargs)


def _lmstudio_factory(name: str, config: ProviderConfig) -> Backend:
    kwargs = {}
    if config.base_url:
        kwargs["base_url"] = config.base_url
    if config.models:
        kwargs["models"] = config.models
    return LMStudioBackend(**kwargs)


# Provider factories: provider name → callable building a backend
_REMOTE_FACTORIES: dict[str, BackendFactory] = {name: _preset_factory for name in PRESETS}
_LOCAL_FACTORIES: dict[str, BackendFactory] = {
    "ollama": _ollama_factory,
    "lmstudio": _lmstudio_factory,
}


class BackendRegistry:
    """Fixed, ordered collection of backends.

    Example::

        registry = BackendRegistry.from_config(config)
        for backend in registry.filter(BackendKind.LOCAL):
            print(backend.name)
    """

    def __init__(self, backends: Iterable[Backend]) -> None:
        self._backends: tuple[Backend, ...] = tuple(backends)
        names = [b.name for b in self._backends]
        if len(set(names)) != len(names):
            raise GatewayError.configuration(f"duplicate backend names: {names}")

    @classmethod
    def from_config(cls, config: GatewayConfig) -> BackendRegistry:
        """Build remote backends in declaration order, then local fallbacks."""
        backends: list[Backend] = []

        for name, provider_config in config.remote_providers.items():
            factory = _REMOTE_FACTORIES.get(name.lower())
            if factory is None:
                raise GatewayError.configuration(
                    f"Unknown remote provider '{name}'. "
                    f"Available: {sorted(_REMOTE_FACTORIES)}. "
                    "Or register one with register_backend()."
                )
            backends.append(factory(name.lower(), provider_config))

        if config.local_fallback is not None and config.local_fallback.enabled:
            for name in config.local_fallback.providers:
                factory = _LOCAL_FACTORIES.get(name.lower())
                if factory is None:
                    raise GatewayError.configuration(
                        f"Unknown local provider '{name}'. "
                        f"Available: {sorted(_LOCAL_FACTORIES)}."
                    )
                backends.append(factory(name.lower(), ProviderConfig()))

        registry = cls(backends)
        logger.info(f"Backend registry: {', '.join(registry.names) or '(empty)'}")
        return registry

    @property
    def names(self) -> list[str]:
        return [b.name for b in self._backends]

    def filter(self, kind: BackendKind | None = None) -> list[Backend]:
        """Backends of ``kind`` in registry order (all backends when kind is None)."""
        if kind is None:
            return list(self._backends)
        kind = BackendKind(kind)
        return [b for b in self._backends if b.kind == kind]

    async def close_all(self) -> None:
        """Close every backend, logging failures."""
        for backend in self._backends:
            try:
                await backend.close()
            except Exception as e:
                logger.warning(f"Error closing backend '{backend.name}': {e}")

    def __iter__(self) -> Iterator[Backend]:
        return iter(self._backends)

    def __len__(self) -> int:
        return len(self._backends)


def register_backend(
    name: str, factory: BackendFactory, kind: BackendKind = BackendKind.REMOTE
) -> None:
    """Register a custom provider so configuration can refer to it by name.

    Example::

        from llm_gateway import register_backend

        register_backend(
            "my_provider",
            lambda name, cfg: MyBackend(api_key=cfg.api_key),
        )
        config = GatewayConfig(remote_providers={"my_provider": ProviderConfig(api_key="k")})
    """
    table = _REMOTE_FACTORIES if BackendKind(kind) is BackendKind.REMOTE else _LOCAL_FACTORIES
    table[name.lower()] = factory
