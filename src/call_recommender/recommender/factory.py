from __future__ import annotations

from typing import Any, Dict, Optional

from call_recommender.inference.network import BayesianNetwork
from call_recommender.observability.logger import EventLogger
from call_recommender.recommender.index import NetworkIndex
from call_recommender.recommender.options import QueryOptions
from call_recommender.recommender.pbn import PBNRecommender


def build_recommender(
    settings: Optional[Dict[str, Any]],
    network: BayesianNetwork | NetworkIndex,
    event_logger: EventLogger | None = None,
) -> PBNRecommender:
    """
    Build a recommender from the ``recommender`` section of the settings.

    Passing a prebuilt ``NetworkIndex`` shares its role bindings with other
    recommenders; each recommender still owns its evidence.
    """
    options = QueryOptions.from_settings(settings)
    if isinstance(network, NetworkIndex):
        return PBNRecommender.from_index(network, options=options, event_logger=event_logger)
    return PBNRecommender(network, options=options, event_logger=event_logger)
