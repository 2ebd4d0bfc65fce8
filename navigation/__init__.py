"""
Stepgate — Navigation Package

Session ownership and the operations a host uses to move through a
gated workflow.

Usage:
    from navigation import NavigationController

    controller = NavigationController(steps, context=ctx, on_step_changed=render)
    controller.complete_step()
    controller.settle()
"""

from navigation.session import NavigationSession
from navigation.scheduler import DeferredScheduler, SettleQueue, EventLoopScheduler
from navigation.controller import NavigationController
from navigation.definitions import WorkflowDefinition, load_workflow, parse_workflow

__all__ = [
    "NavigationController",
    "NavigationSession",
    "DeferredScheduler",
    "SettleQueue",
    "EventLoopScheduler",
    "WorkflowDefinition",
    "load_workflow",
    "parse_workflow",
]
