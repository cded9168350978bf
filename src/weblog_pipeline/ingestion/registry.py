"""
Decoder registry for line formats.

Maps configured log types ('nginx', 'json') to LineDecoder classes so
the scanner selects a strategy once per file instead of branching on
the format line by line.
"""

import logging
from typing import Type

from ..enrichment import Enricher
from .base import LineDecoder
from .exceptions import DecoderNotFoundError

logger = logging.getLogger(__name__)


class DecoderRegistry:
    """
    Registry for line decoders.

    Usage:
        # Register using decorator
        @DecoderRegistry.register('nginx')
        class CombinedLogDecoder(LineDecoder):
            ...

        # Get decoder instance
        decoder = DecoderRegistry.get_decoder('nginx', enricher)
    """

    _decoders: dict[str, Type[LineDecoder]] = {}

    @classmethod
    def register(cls, log_type: str):
        """
        Decorator to register a decoder class.

        Args:
            log_type: Log type identifier for registry lookup
        """

        def decorator(decoder_class: Type[LineDecoder]) -> Type[LineDecoder]:
            cls.register_decoder(log_type, decoder_class)
            return decoder_class

        return decorator

    @classmethod
    def register_decoder(cls, log_type: str, decoder_class: Type[LineDecoder]) -> None:
        """
        Register a decoder class for a log type.

        Raises:
            TypeError: If decoder_class doesn't inherit from LineDecoder
        """
        if not issubclass(decoder_class, LineDecoder):
            raise TypeError(
                f"Decoder class must inherit from LineDecoder, "
                f"got {decoder_class.__name__}"
            )

        log_type = log_type.lower()

        if log_type in cls._decoders:
            logger.warning(f"Overwriting existing decoder for log type '{log_type}'")

        cls._decoders[log_type] = decoder_class
        logger.debug(f"Registered line decoder: {log_type}")

    @classmethod
    def get_decoder(cls, log_type: str, enricher: Enricher) -> LineDecoder:
        """
        Get a decoder instance for a log type.

        Raises:
            DecoderNotFoundError: If the log type is not registered
        """
        log_type = log_type.lower()

        if log_type not in cls._decoders:
            raise DecoderNotFoundError(
                log_type=log_type,
                available_types=list(cls._decoders.keys()),
            )

        return cls._decoders[log_type](enricher)

    @classmethod
    def list_log_types(cls) -> list[str]:
        """Sorted list of registered log types."""
        return sorted(cls._decoders.keys())


def get_decoder(log_type: str, enricher: Enricher) -> LineDecoder:
    """
    Get a decoder instance by log type.

    Convenience function wrapping DecoderRegistry.get_decoder().
    """
    return DecoderRegistry.get_decoder(log_type, enricher)
