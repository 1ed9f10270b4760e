#!/usr/bin/env python3

from bookshelf.core.bootstrap import create_app, run_app

# Create the application
app = create_app()


# Run the application
if __name__ == "__main__":
    run_app(app)
