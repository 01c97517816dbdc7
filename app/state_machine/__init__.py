"""
State Machine Module for the Wash Session Lifecycle
"""
from app.state_machine.states import TransitionAction, WASH_SESSION_TRANSITIONS
from app.state_machine.manager import WashSessionStateManager

__all__ = ["TransitionAction", "WASH_SESSION_TRANSITIONS", "WashSessionStateManager"]
