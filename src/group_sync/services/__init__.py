# Sync orchestration and alert tracking
