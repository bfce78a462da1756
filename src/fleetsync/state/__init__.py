"""Process state shared by sync jobs."""

from fleetsync.state.cache import FetchCache
from fleetsync.state.failover import EndpointFailover, EndpointRole
from fleetsync.state.status import StatusBoard

__all__ = ["EndpointFailover", "EndpointRole", "FetchCache", "StatusBoard"]
