# apps/offline/management/commands/offline.py

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from apps.offline.client import build_offline_client
from apps.offline.local_store import StorageError


class Command(BaseCommand):
    help = 'Inspects, replays or clears the offline queue against a Corkboard server'

    def add_arguments(self, parser):
        parser.add_argument('action', choices=['status', 'sync', 'clear'])
        parser.add_argument('--base-url', default='http://localhost:8000')
        parser.add_argument('--username', help='Sign in before syncing')
        parser.add_argument('--password')
        parser.add_argument('--store', help=f'Store path (default {settings.CORKBOARD_OFFLINE_STORE_PATH})')

    def handle(self, *args, **options):
        try:
            client = build_offline_client(
                options['base_url'],
                store_path=options['store'],
                auto_sync=options['action'] == 'sync',
            )
        except StorageError as e:
            raise CommandError(str(e))

        try:
            action = options['action']
            if action == 'status':
                self.show_status(client)
            elif action == 'sync':
                self.sync(client, options)
            else:
                client.handle_message({'type': 'CLEAR_OFFLINE_DATA'})
                self.stdout.write(self.style.SUCCESS('🧹 Offline data cleared'))
        except StorageError as e:
            raise CommandError(f"Local store failure: {e}")
        finally:
            client.close()

    def show_status(self, client):
        online = client.check_connection()
        status = client.status()

        self.stdout.write(f"🌐 Server: {client.base_url} ({'online' if online else 'offline'})")
        self.stdout.write(f"📦 Pending operations: {status['pendingOperations']}")
        for operation in client.store.get_pending_operations():
            self.stdout.write(
                f"  - {operation.method} {operation.endpoint} "
                f"[{operation.type}] retries={operation.retry_count}"
            )
        self.stdout.write(f"🕒 Last sync: {status['lastSyncTime'] or 'never'}")

    def sync(self, client, options):
        if options['username']:
            if not client.sign_in(options['username'], options['password'] or ''):
                raise CommandError('Sign in failed')

        # Coming online replays the queue once by itself
        client.engine.last_result = None
        if not client.check_connection():
            raise CommandError(f"Server {client.base_url} is not reachable")
        result = client.engine.last_result or client.sync_now()

        if result.aborted:
            self.stdout.write(self.style.ERROR('Sync aborted: not authenticated'))
        style = self.style.SUCCESS if result.success else self.style.WARNING
        self.stdout.write(style(
            f"✅ {result.synced} synced, {result.failed} failed, {result.remaining} remaining"
        ))
