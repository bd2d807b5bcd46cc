"""Plan computation: dose composition, class strategies and scheduling."""
