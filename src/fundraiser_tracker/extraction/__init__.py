"""Free-text order extraction through an external language model.

Modules:
- parser: JSON recovery + validation of the model's answer
- client: prompt, schema, HTTP backends and the `OrderExtractionClient`
"""

from .client import OpenAIBackend, OpenRouterBackend, OrderExtractionClient
from .parser import ExtractionError, ExtractionValidationError, parse_extraction_payload

__all__ = [
    "ExtractionError",
    "ExtractionValidationError",
    "OpenAIBackend",
    "OpenRouterBackend",
    "OrderExtractionClient",
    "parse_extraction_payload",
]
