from typing import Dict, Type

import attr
from sqlalchemy.orm import DeclarativeMeta


@attr.s(auto_attribs=True)
class SaRegistry:
    """Declarative document classes, one per persistence location."""

    locations_models: Dict[str, Type[DeclarativeMeta]] = attr.Factory(dict)
