"""
Transaction sync engine.

Fetches completed transactions from the bank API, upserts them into the
local cache exactly once per remote id and tracks a durable watermark so
the next run only asks for what is new.

Entry points live in `ledgersync.sync.engine` (`SyncEngine`,
`get_sync_engine`). This package does not import them eagerly because the
database layer depends on `ledgersync.sync.clients`.
"""
