"""Quillgraph: GraphQL API for users, posts, books, comments, reviews and files."""
