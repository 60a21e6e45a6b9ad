#!/usr/bin/env python
"""Corkboard management entry point.

`python manage.py setup` creates the tables and seeds a demo board.
"""

import os
import sys


def main():
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')

    from django.core.management import call_command, execute_from_command_line

    if sys.argv[1:2] == ['setup']:
        import django

        django.setup()
        call_command('migrate', interactive=False, run_syncdb=True)
        call_command('seed')
        return

    execute_from_command_line(sys.argv)


if __name__ == '__main__':
    main()
