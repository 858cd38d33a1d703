"""
告警定义请求/响应数据模型

字段值的合法性（严重级别、表达式、动作 ID 等）由核心校验器统一检查，
这里只声明结构与类型。
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any


class AlarmDefinitionCreate(BaseModel):
    """告警定义创建请求"""
    name: str = Field(..., description="名称，租户内唯一")
    description: Optional[str] = Field(None, description="描述")
    severity: Optional[str] = Field(None, description="严重级别: LOW, MEDIUM, HIGH, CRITICAL（默认 LOW）")
    expression: str = Field(..., description="告警表达式，如 avg(cpu{host=web-01}) > 90")
    match_by: List[str] = Field(default_factory=list, description="分组维度键")
    actions_enabled: bool = Field(default=True, description="是否启用通知动作")
    alarm_actions: List[str] = Field(default_factory=list, description="进入 ALARM 状态时触发的动作")
    ok_actions: List[str] = Field(default_factory=list, description="进入 OK 状态时触发的动作")
    undetermined_actions: List[str] = Field(default_factory=list, description="进入 UNDETERMINED 状态时触发的动作")


class AlarmDefinitionUpdate(BaseModel):
    """告警定义完整替换请求"""
    name: str = Field(..., description="名称")
    description: Optional[str] = Field(None, description="描述")
    severity: str = Field(..., description="严重级别")
    expression: str = Field(..., description="告警表达式")
    match_by: List[str] = Field(default_factory=list, description="分组维度键")
    actions_enabled: bool = Field(..., description="是否启用通知动作")
    alarm_actions: List[str] = Field(default_factory=list, description="ALARM 动作")
    ok_actions: List[str] = Field(default_factory=list, description="OK 动作")
    undetermined_actions: List[str] = Field(default_factory=list, description="UNDETERMINED 动作")


class Link(BaseModel):
    rel: str
    href: str


class AlarmDefinitionResponse(BaseModel):
    """告警定义响应"""
    id: str = Field(..., description="定义 ID")
    name: str = Field(..., description="名称")
    description: str = Field("", description="描述")
    severity: str = Field(..., description="严重级别")
    expression: str = Field(..., description="原始表达式")
    normalized_expression: str = Field(..., description="规范化表达式")
    expression_data: Dict[str, Any] = Field(..., description="规范化表达式树")
    match_by: List[str] = Field(default_factory=list, description="分组维度键")
    actions_enabled: bool = Field(..., description="是否启用通知动作")
    alarm_actions: List[str] = Field(default_factory=list)
    ok_actions: List[str] = Field(default_factory=list)
    undetermined_actions: List[str] = Field(default_factory=list)
    version: int = Field(..., description="版本号")
    links: List[Link] = Field(default_factory=list, description="导航链接")


class AlarmDefinitionListResponse(BaseModel):
    """告警定义列表响应"""
    elements: List[AlarmDefinitionResponse] = Field(..., description="定义列表")
    total: int = Field(..., description="总数")
