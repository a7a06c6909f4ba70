"""Services subpackage - persistence, history, backup, export and assistant."""
