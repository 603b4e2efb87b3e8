"""
Stack Inventory Module for Azure Inventory Graph.

Builds orchestration stacks (ARM deployments) with their resources, outputs
and parameters, links nested stacks to their parent and attaches exported
templates.

Stack resources come from one of two paths. When the collector holds cached
resources for a deployment (the deployment is unchanged since the previous
run), they are rebuilt from the cached attributes; otherwise they are fetched
live. Both paths go through ``_build_stack_resource`` so the secondary index
is written the same way.
"""

import logging
from typing import Any, Dict, List, Optional

from .base_inventory import BaseInventory
from .models import OrchestrationStack
from .utils import dig

logger = logging.getLogger(__name__)


def resource_status_reason(properties: Dict[str, Any]) -> Optional[str]:
    """Error message of a deployment operation, else its status code."""
    message = properties.get('statusMessage')
    if isinstance(message, dict):
        error_message = dig(message, 'error', 'message')
        if error_message:
            return str(error_message)
    elif isinstance(message, str) and message:
        return message

    status_code = properties.get('statusCode')
    if status_code not in (None, ''):
        return str(status_code)
    return None


def parse_stack_resource(operation: Dict[str, Any]) -> Dict[str, Any]:
    """Attributes of a stack resource from a raw deployment operation."""
    properties = operation['properties']
    target = properties['targetResource']
    return {
        'ems_ref': target['id'],
        'name': target.get('resourceName'),
        'logical_resource': target.get('resourceName'),
        'physical_resource': properties.get('trackingId'),
        'resource_category': target.get('resourceType'),
        'resource_status': properties.get('provisioningState'),
        'resource_status_reason': resource_status_reason(properties),
        'last_updated': properties.get('timestamp')
    }


class StackInventory(BaseInventory):
    """Builds orchestration stacks and everything hanging off them."""

    def build_stacks(self, deployments: Optional[List[Dict[str, Any]]] = None) -> None:
        """Build every deployment, then link nested stacks to their parent.

        Args:
            deployments: Raw deployment records (optional, listed from the collector if not given)
        """
        deployments = self.collector.stacks() if deployments is None else deployments
        cache = self.collector.stacks_resources_cache
        self.build_each('orchestration_stacks', deployments,
                        lambda deployment: self.build_stack(deployment, cache))
        self.link_stack_parents()
        logger.info(
            f"Built {len(self.graph.orchestration_stacks)} stacks with "
            f"{len(self.graph.orchestration_stacks_resources)} resources"
        )

    def build_stack(self, deployment: Dict[str, Any],
                    cache: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> OrchestrationStack:
        """Build one stack with its resources, outputs and parameters.

        Args:
            deployment: Raw record from ``az deployment group list``
            cache: Cached resource attributes keyed by lower-cased deployment id

        Returns:
            The stack entity
        """
        properties = deployment.get('properties') or {}
        rg_ems_ref = self.collector.get_resource_group_ems_ref(deployment)

        stack = self.graph.orchestration_stacks.build(
            ems_ref=deployment['id'],
            name=deployment['name'],
            description=deployment['name'],
            status=properties.get('provisioningState'),
            finish_time=properties.get('timestamp'),
            resource_group=self.graph.resource_groups.find(rg_ems_ref)
        )

        cached = (cache or {}).get(deployment['id'].lower())
        if cached is not None:
            self.stack_resources_from_cache(stack, cached)
        else:
            self.stack_resources(stack, deployment)

        self.stack_outputs(stack, deployment)
        self.stack_parameters(stack, deployment)
        return stack

    def stack_resources(self, stack: OrchestrationStack, deployment: Dict[str, Any]) -> None:
        """Fetch the operations of a deployment and build one resource per target.

        Args:
            stack: Stack owning the resources
            deployment: Raw deployment record
        """
        operations = self.fetch('orchestration_stacks', deployment['id'],
                                lambda: self.collector.stack_resources(deployment)) or []
        # Operations without a target resource describe the deployment itself
        targeted = [operation for operation in operations
                    if dig(operation, 'properties', 'targetResource')]
        self.build_each(
            'orchestration_stacks_resources', targeted,
            lambda operation: self._build_stack_resource(stack, parse_stack_resource(operation))
        )

    def stack_resources_from_cache(self, stack: OrchestrationStack,
                                   resources: List[Dict[str, Any]]) -> None:
        """Rebuild the resources of an unchanged stack from cached attributes.

        Args:
            stack: Stack owning the resources
            resources: Resource attribute dictionaries from a previous export
        """
        logger.debug(f"Using {len(resources)} cached resources for stack {stack.ems_ref}")
        self.build_each(
            'orchestration_stacks_resources', resources,
            lambda attributes: self._build_stack_resource(stack, dict(attributes))
        )

    def _build_stack_resource(self, stack: OrchestrationStack, attributes: Dict[str, Any]):
        attributes['stack'] = stack
        stack_resource = self.graph.orchestration_stacks_resources.build(**attributes)
        self.index.put(stack_resource.ems_ref, stack)
        return stack_resource

    def _deployment_section(self, deployment: Dict[str, Any], name: str, category: str) -> Dict[str, Any]:
        section = dig(deployment, 'properties', name) or {}
        if isinstance(section, dict):
            return section
        logger.warning(f"Ignoring {name} of stack {deployment['id']}: not a mapping")
        self.report.skip(category, deployment['id'], f"malformed {name}: expected a mapping")
        return {}

    def stack_outputs(self, stack: OrchestrationStack, deployment: Dict[str, Any]) -> None:
        """Build the outputs of a deployment.

        Args:
            stack: Stack owning the outputs
            deployment: Raw deployment record with ``properties.outputs``
        """
        outputs = self._deployment_section(deployment, 'outputs', 'orchestration_stacks_outputs')
        self.build_each(
            'orchestration_stacks_outputs', outputs.items(),
            lambda item: self.graph.orchestration_stacks_outputs.build(
                stack=stack,
                ems_ref=f"{deployment['id']}/{item[0]}",
                key=item[0],
                value=item[1].get('value'),
                description=item[0]
            )
        )

    def stack_parameters(self, stack: OrchestrationStack, deployment: Dict[str, Any]) -> None:
        """Build the parameters of a deployment.

        Args:
            stack: Stack owning the parameters
            deployment: Raw deployment record with ``properties.parameters``
        """
        parameters = self._deployment_section(deployment, 'parameters', 'orchestration_stacks_parameters')
        self.build_each(
            'orchestration_stacks_parameters', parameters.items(),
            lambda item: self.graph.orchestration_stacks_parameters.build(
                stack=stack,
                ems_ref=f"{deployment['id']}/{item[0]}",
                name=item[0],
                value=item[1].get('value')
            )
        )

    def link_stack_parents(self) -> None:
        """Point each stack at the stack that lists it as a resource."""
        nested = 0
        for stack in self.graph.orchestration_stacks:
            parent = self.index.get(stack.ems_ref)
            stack.parent = parent if parent is not stack else None
            if stack.parent is not None:
                nested += 1
        logger.info(f"Linked {nested} nested stacks to their parent")

    def build_stack_templates(self, templates: Optional[List[Dict[str, Any]]] = None) -> None:
        """Build exported templates and attach them to their stacks.

        Args:
            templates: Template records with ``uid``, ``name``, ``description`` and ``content``
        """
        templates = self.collector.stack_templates() if templates is None else templates
        self.build_each('orchestration_templates', templates, self.build_stack_template)
        logger.info(f"Built {len(self.graph.orchestration_templates)} templates")

    def build_stack_template(self, template: Dict[str, Any]):
        """Build one template; a template whose stack was never built stays unattached.

        Returns:
            The template entity
        """
        orchestration_template = self.graph.orchestration_templates.build(
            ems_ref=template['uid'],
            name=template.get('name'),
            description=template.get('description'),
            content=template.get('content'),
            orderable=False
        )

        stack = self.graph.orchestration_stacks.find(template['uid'])
        if stack is not None:
            stack.orchestration_template = orchestration_template
        else:
            logger.debug(f"No stack for template {template['uid']}")
        return orchestration_template
