from adapters.meta.client import MetaClient
from adapters.meta.detailed_targeting import MetaInterestAdapter, meta_interest_adapter

__all__ = ["MetaClient", "MetaInterestAdapter", "meta_interest_adapter"]
