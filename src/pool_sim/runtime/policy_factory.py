from pool_sim.app.protocols import PoolingPolicy
from pool_sim.config.models import PoolingStrategy
from pool_sim.policy.pooling import FixedWindowPolicy, FlexibleWindowPolicy


def make_pooling_policy(strategy: PoolingStrategy, *, cutoff_frac: float = 0.8) -> PoolingPolicy:
    if strategy == "FixedWindow":
        return FixedWindowPolicy()
    elif strategy == "FlexibleWindow":
        return FlexibleWindowPolicy(cutoff_frac=cutoff_frac)
    else:
        raise TypeError(strategy)
