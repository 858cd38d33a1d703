"""
告警定义 API 路由

请求处理层只做参数提取与链接注入，
校验、规范化与生命周期管理全部由 AlarmDefinitionService 完成。
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, Response

from alarms import AlarmDefinitionService, LinkHydrator
from api.dependencies import get_definition_service, get_link_hydrator, get_tenant_id
from api.schemas.alarm_definition import (
    AlarmDefinitionCreate,
    AlarmDefinitionListResponse,
    AlarmDefinitionResponse,
    AlarmDefinitionUpdate,
)
from api.schemas.response import APIResponse, success_response

router = APIRouter()


@router.post("", status_code=201, response_model=APIResponse[AlarmDefinitionResponse])
async def create_alarm_definition(
    request: AlarmDefinitionCreate,
    response: Response,
    tenant_id: str = Depends(get_tenant_id),
    service: AlarmDefinitionService = Depends(get_definition_service),
    links: LinkHydrator = Depends(get_link_hydrator),
):
    """
    创建告警定义

    表达式会被解析、校验并规范化；同名且内容相同的重复提交返回已有定义。
    """
    definition = service.create_definition(
        tenant_id,
        name=request.name,
        description=request.description,
        severity=request.severity,
        expression=request.expression,
        match_by=request.match_by,
        alarm_actions=request.alarm_actions,
        ok_actions=request.ok_actions,
        undetermined_actions=request.undetermined_actions,
        actions_enabled=request.actions_enabled,
    )
    response.headers["Location"] = links.self_href(definition.id)
    return success_response(data=links.hydrate(definition), message="告警定义已创建", code=201)


@router.get("", response_model=APIResponse[AlarmDefinitionListResponse])
async def list_alarm_definitions(
    name: Optional[str] = Query(None, description="按名称过滤"),
    dimensions: Optional[str] = Query(None, description="按维度过滤，格式 key1:value1,key2:value2"),
    tenant_id: str = Depends(get_tenant_id),
    service: AlarmDefinitionService = Depends(get_definition_service),
    links: LinkHydrator = Depends(get_link_hydrator),
):
    """列出租户的告警定义"""
    definitions = service.list_definitions(tenant_id, name=name, dimensions=dimensions)
    return success_response(
        data={
            "elements": links.hydrate_all(definitions),
            "total": len(definitions),
        }
    )


@router.get("/{definition_id}", response_model=APIResponse[AlarmDefinitionResponse])
async def get_alarm_definition(
    definition_id: str = Path(..., description="告警定义 ID"),
    tenant_id: str = Depends(get_tenant_id),
    service: AlarmDefinitionService = Depends(get_definition_service),
    links: LinkHydrator = Depends(get_link_hydrator),
):
    """获取单个告警定义"""
    definition = service.get_definition(tenant_id, definition_id)
    return success_response(data=links.hydrate(definition))


@router.put("/{definition_id}", response_model=APIResponse[AlarmDefinitionResponse])
async def replace_alarm_definition(
    request: AlarmDefinitionUpdate,
    definition_id: str = Path(..., description="告警定义 ID"),
    tenant_id: str = Depends(get_tenant_id),
    service: AlarmDefinitionService = Depends(get_definition_service),
    links: LinkHydrator = Depends(get_link_hydrator),
):
    """完整替换告警定义"""
    definition = service.replace_definition(
        tenant_id,
        definition_id,
        expression=request.expression,
        name=request.name,
        description=request.description,
        severity=request.severity,
        match_by=request.match_by,
        actions_enabled=request.actions_enabled,
        alarm_actions=request.alarm_actions,
        ok_actions=request.ok_actions,
        undetermined_actions=request.undetermined_actions,
    )
    return success_response(data=links.hydrate(definition), message="告警定义已更新")


@router.patch("/{definition_id}", response_model=APIResponse[AlarmDefinitionResponse])
async def patch_alarm_definition(
    fields: Dict[str, Any] = Body(..., description="需要修改的字段"),
    definition_id: str = Path(..., description="告警定义 ID"),
    tenant_id: str = Depends(get_tenant_id),
    service: AlarmDefinitionService = Depends(get_definition_service),
    links: LinkHydrator = Depends(get_link_hydrator),
):
    """
    局部更新告警定义

    只修改请求体中出现的字段；显式的空列表表示清空，空字符串描述表示清空描述。
    """
    definition = service.patch_definition(tenant_id, definition_id, fields)
    return success_response(data=links.hydrate(definition), message="告警定义已更新")


@router.delete("/{definition_id}", status_code=204)
async def delete_alarm_definition(
    definition_id: str = Path(..., description="告警定义 ID"),
    tenant_id: str = Depends(get_tenant_id),
    service: AlarmDefinitionService = Depends(get_definition_service),
):
    """删除告警定义（仍被活跃告警引用时拒绝）"""
    service.delete_definition(tenant_id, definition_id)
    return Response(status_code=204)
