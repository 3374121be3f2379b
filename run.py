"""Project root entry point for launching the HTTP API."""

from __future__ import annotations

import os

from cms_i18n.web import create_app


def main():
    app = create_app()
    app.run(
        host=os.environ.get("CMS_I18N_HOST", "0.0.0.0"),
        port=int(os.environ.get("CMS_I18N_PORT", "5500")),
        debug=os.environ.get("CMS_I18N_DEBUG", "").lower() in ("1", "true", "yes"),
    )


if __name__ == "__main__":
    main()
