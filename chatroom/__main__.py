"""
Allow the chatroom package to be executed as a module.

This enables running the server with:
    python -m chatroom
    python -m chatroom --port 4000
"""

from chatroom.main import main

if __name__ == "__main__":
    main()
