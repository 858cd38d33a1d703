"""
链接注入

为返回给调用方的告警定义添加可导航的链接，纯展示用途。
"""
from typing import Any, Dict, Iterable, List

from .models import AlarmDefinition

ALARM_DEFINITIONS = "alarm-definitions"


class LinkHydrator:
    """为实体字典添加 links 字段"""

    def __init__(self, base_url: str, prefix: str = "/v2.0"):
        self.base_url = base_url.rstrip("/")
        self.prefix = "/" + prefix.strip("/") if prefix.strip("/") else ""

    def collection_href(self) -> str:
        return f"{self.base_url}{self.prefix}/{ALARM_DEFINITIONS}"

    def self_href(self, definition_id: str) -> str:
        return f"{self.collection_href()}/{definition_id}"

    def hydrate(self, definition: AlarmDefinition) -> Dict[str, Any]:
        data = definition.to_dict()
        data["links"] = [{"rel": "self", "href": self.self_href(definition.id)}]
        return data

    def hydrate_all(self, definitions: Iterable[AlarmDefinition]) -> List[Dict[str, Any]]:
        return [self.hydrate(d) for d in definitions]
