"""AI Generation Gateway Layer.

Provides one async text-generation entry point over several independent
backends with:
  - Vendor-Specific Adapters (Azure OpenAI, Gemini, DeepSeek)
  - Provider Registry (static, configuration-driven priority chain)
  - Orchestrator (per-provider deadlines, retry/fallback classification)
  - Health Probe (on-demand reachability report)
  - Result Cache (short-lived TTL + LRU memoization)
  - Circuit Breaker (optional cooldown for failing providers)
"""
