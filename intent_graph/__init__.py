# intent_graph/__init__.py
"""
Intent / Journey Graph Analytics Engine

Turns the behavioral signals of the travel site (page visits, conversions,
bounces) into a directed graph of intents, content and outcomes, and answers
the analytic queries behind the admin dashboards:

- Which visitor intents fail most often
- Which content pages break journeys
- Where sessions drop off
- Which journeys convert, and which carry the most value
- Intent flow (Sankey) for a single intent or the whole site

The engine is in-memory and rebuildable from the external signal log.
"""

__version__ = "1.0.0"

# Package structure:
# intent_graph/
# ├── __init__.py           <- This file
# ├── config.py             <- Configuration settings
# ├── main.py               <- Optional FastAPI admin adapter
# │
# ├── schemas/              <- Pydantic Models
# │   └── graph_schemas.py  <- Signals, queries, QueryResult
# │
# ├── interfaces/           <- Data Stores
# │   └── graph_store.py    <- Nodes, edges, sessions, generation counter
# │
# ├── ingestion/            <- Signal intake
# │   ├── graph_builder.py  <- Signal -> graph mutation
# │   └── signal_log.py     <- JSON-lines replay
# │
# ├── cache/                <- Generation-keyed memoization
# │   └── score_cache.py
# │
# ├── algorithms/           <- Scoring algorithms
# │   ├── journeys.py       <- Journey identity + funnel matching
# │   └── graph_scorer.py   <- Failure / break / drop-off / path value
# │
# ├── queries/              <- Query catalogue
# │   └── query_engine.py   <- Named queries + execute() dispatcher
# │
# └── api/                  <- FastAPI Routers
#     └── intent_graph.py   <- /api/intent-graph
