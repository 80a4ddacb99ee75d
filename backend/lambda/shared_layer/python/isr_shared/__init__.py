"""isr_shared - Shared utilities for the ISR Lambda functions.

Provides:
    - Lazy-singleton AWS service clients
    - API Gateway response envelope helpers
    - Authorizer claim extraction
    - DynamoDB deserialization and timestamp helpers
"""

__version__ = "1.0.0"
