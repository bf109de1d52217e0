class Templates:
    """Шаблоны для генерации файлов"""

    generated_notice = "# Auto-generated by schema-sync. Do not edit."

    types_imports = [
        "from __future__ import annotations",
        "",
        "from datetime import date, datetime",
        "from enum import Enum",
        "from typing import Any, Dict, List, Literal, Optional, Union",
        "",
        "from pydantic import BaseModel, ConfigDict, Field",
    ]

    functions_imports = [
        "from typing import Any, Dict, Optional",
        "",
        "from schema_sync.runtime import (",
        "    CallOptions,",
        "    RequestOptions,",
        "    Requester,",
        "    ResponseError,",
        "    parse_response,",
        ")",
        "",
        "from . import types as {types_alias}",
    ]

    subscriptions_imports = [
        "from typing import Any, Dict, Optional",
        "",
        "from schema_sync.runtime import (",
        "    CallOptions,",
        "    MutationSubscription,",
        "    QuerySubscription,",
        "    Requester,",
        ")",
        "",
        "from . import types as {types_alias}",
    ]

    default_requester = """requester = create_default_requester(
    base_url={base_url},
    get_token={get_token},
)"""

    scaffold_adapter = '''# Requester adapter for the schema-sync generated client.
# This file is created once and never overwritten: adjust it to your application.
import logging
from typing import Optional

from schema_sync.runtime import RequestOptions, Response, create_default_requester

logger = logging.getLogger(__name__)


async def get_token() -> Optional[str]:
    """Bearer token for operations that require authentication"""
    logger.warning("get_token() is not implemented in {file_name}")
    return None


# Any object with `async def request(options: RequestOptions) -> Response` works here
requester = create_default_requester(base_url={base_url}, get_token=get_token)
'''


templates = Templates()
