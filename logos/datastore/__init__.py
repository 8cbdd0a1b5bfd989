"""SQLite repositories for users, readings, sources, editions and deliveries."""