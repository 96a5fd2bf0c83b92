# pool_sim/io/business_events.py

from dataclasses import dataclass


# Base type for analytics events (observability only, never drives the sim)
@dataclass
class BizEvent:
    run_id: str
    t_ms: int  # simulation time
    tick: int  # tick sequence (for total ordering)
    name: str  # stable event name


@dataclass
class RequestCreatedBiz(BizEvent):
    request_id: int
    location: tuple[float, float]
    cell: str


@dataclass
class PoolActivatedBiz(BizEvent):
    cell: str


@dataclass
class TripMatchedBiz(BizEvent):
    request_id: int
    driver_id: int
    match_id: int
    cell: str
    cost: float
    wait_s: float
    cost_source: str  # "distance" | "oracle"


@dataclass
class PickupCompletedBiz(BizEvent):
    request_id: int
    driver_id: int
    release_at_ms: int


@dataclass
class PoolRequeuedBiz(BizEvent):
    cell: str
    request_ids: list[int]
    considered: int
    matched: int


@dataclass
class MatchOrphanedBiz(BizEvent):
    match_id: int
    request_id: int
    driver_id: int
