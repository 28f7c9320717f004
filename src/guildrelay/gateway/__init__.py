"""Gateway: channel filter, Discord session, reconnect supervisor."""

from guildrelay.gateway.filter import ChannelFilter
from guildrelay.gateway.session import GatewaySession, SessionState
from guildrelay.gateway.supervisor import GatewaySupervisor

__all__ = ["ChannelFilter", "GatewaySession", "GatewaySupervisor", "SessionState"]
