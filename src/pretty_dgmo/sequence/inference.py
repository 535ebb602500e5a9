from __future__ import annotations

import re

from .types import ParticipantKind

# ============================================================================
# Participant kind inference
#
# Ordered (pattern, kind) rules table; first match wins. Override groups come
# before the suffix rules so that e.g. "Router" is networking rather than an
# actor (it ends in -er), and "KeyDB" is a cache rather than a database.
#
# Group order:
#   0. conflict overrides
#   1. infrastructure -er/-or names that are not actors
#   2. networking   3. database   4. cache   5. queue
#   6. actor        7. frontend   8. service 9. external
# ============================================================================


def _rules(kind: ParticipantKind, *patterns: str) -> list[tuple[re.Pattern[str], ParticipantKind]]:
    return [(re.compile(p, re.IGNORECASE), kind) for p in patterns]


_SERVICE_SUFFIXES = (
    "Scheduler", "Dispatcher", "Controller", "Handler", "Processor",
    "Connector", "Adapter", "Provider", "Manager", "Orchestrator", "Monitor",
    "Resolver", "Logger", "Server", "Worker", "Consumer", "Producer",
    "Publisher", "Subscriber", "Listener", "Watcher", "Executor",
    "Aggregator", "Collector", "Transformer", "Validator", "Generator",
    "Indexer", "Crawler", "Scanner", "Parser", "Emitter", "Exporter",
    "Importer", "Loader", "Renderer", "Checker", "Inspector", "Encoder",
    "Decoder", "Notifier",
)

_RULES: list[tuple[re.Pattern[str], ParticipantKind]] = [
    # 0. conflict overrides
    *_rules("cache", r"^KeyDB$"),
    *_rules("external", r"Webhook", r"^Upstream$", r"^Downstream$"),
    # 1. infrastructure overrides
    *_rules("networking", r"Router$", r"Balancer$"),
    *_rules("queue", r"Broker$"),
    *_rules("service", *(f"{s}$" for s in _SERVICE_SUFFIXES)),
    # 2. networking
    *_rules(
        "networking",
        r"Gateway", r"GW$", r"Proxy", r"LB$", r"LoadBalancer", r"CDN",
        r"Firewall", r"WAF$", r"DNS", r"Ingress", r"Nginx", r"Traefik",
        r"Envoy", r"Istio", r"Kong", r"Akamai", r"Cloudflare", r"Mesh$",
    ),
    # 3. database
    *_rules(
        "database",
        r"DB$", r"Database", r"Datastore", r"Store$", r"Storage", r"Repo$",
        r"Repository", r"SQL", r"Postgres", r"Mongo", r"Dynamo", r"^Aurora$",
        r"Spanner", r"Supabase", r"Firebase", r"BigQuery", r"Redshift",
        r"Snowflake", r"Cassandra", r"Neo4j", r"ClickHouse", r"Elastic",
        r"OpenSearch", r"Druid", r"Trino", r"Pinecone", r"Weaviate",
        r"Qdrant", r"Milvus", r"Presto", r"Table$",
    ),
    # 4. cache
    *_rules(
        "cache",
        r"Cache", r"Redis", r"Memcache", r"Dragonfly", r"Hazelcast", r"Valkey",
    ),
    # 5. queue / messaging
    *_rules(
        "queue",
        r"Queue", r"MQ$", r"SQS", r"Kafka", r"EventBus", r"MessageBus",
        r"Bus$", r"Topic", r"Stream$", r"SNS", r"PubSub", r"NATS", r"Pulsar",
        r"Kinesis", r"EventBridge", r"CloudEvents", r"Celery", r"Sidekiq",
        r"EventHub", r"Channel$",
    ),
    # 6. actor -- exact names, then suffixes
    *_rules(
        "actor",
        r"^Admin$", r"^User$", r"^Customer$", r"^Client$", r"^Agent$",
        r"^Person$", r"^Buyer$", r"^Seller$", r"^Guest$", r"^Visitor$",
        r"^Operator$", r"^Alice$", r"^Bob$", r"^Charlie$", r"^Fan$",
        r"^Purchaser$", r"^Reviewer$", r"User$", r"Actor$", r"Analyst$",
    ),
    # 7. frontend
    *_rules(
        "frontend",
        r"App$", r"Application", r"Mobile", r"iOS", r"Android", r"Web",
        r"Browser", r"Frontend", r"UI$", r"Dashboard", r"CLI$", r"Terminal",
        r"React", r"^Vue$", r"Angular", r"Svelte", r"NextJS", r"Nuxt",
        r"Remix", r"Electron", r"Tauri", r"Widget$", r"Portal", r"Console$",
        r"^SPA$", r"^PWA$",
    ),
    # 8. service
    *_rules(
        "service",
        r"Service", r"Svc$", r"API$", r"Lambda", r"Function$", r"Fn$",
        r"Job$", r"Cron", r"^Auth$", r"^AuthN$", r"^AuthZ$", r"^SSO$",
        r"OAuth", r"^OIDC$", r"Stripe", r"Twilio", r"SendGrid", r"Mailgun",
        r"^S3$", r"^Blob$", r"Vercel", r"Netlify", r"Heroku", r"Docker",
        r"Kubernetes", r"K8s", r"Terraform", r"Vault", r"^HSM$", r"KMS",
        r"^IAM$", r"^LLM$", r"GPT", r"Embedding", r"Inference",
        r"Pipeline$", r"Registry", r"Engine$", r"Daemon",
    ),
    # 9. external
    *_rules(
        "external",
        r"External", r"Ext$", r"ThirdParty", r"3P$", r"Vendor", r"Callback",
        r"^AWS$", r"^GCP$", r"Azure",
    ),
]

RULE_COUNT = len(_RULES)


def infer_participant_kind(name: str) -> ParticipantKind:
    """Guess a participant's kind from its name; "plain" when nothing matches."""
    for pattern, kind in _RULES:
        if pattern.search(name):
            return kind
    return "plain"
