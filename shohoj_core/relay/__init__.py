"""服务端流转发。"""

from shohoj_core.relay.stream_relay import RelayOutcome, open_relay

__all__ = ["RelayOutcome", "open_relay"]
