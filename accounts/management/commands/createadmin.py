from django.core.management.base import BaseCommand
from accounts.models import User, Role


class Command(BaseCommand):
    help = 'Creates an admin account that can review doctor registrations'

    def add_arguments(self, parser):
        parser.add_argument('--email', type=str, help='Admin email', default='admin@docspot.local')
        parser.add_argument('--password', type=str, help='Admin password', default='admin123')
        parser.add_argument('--full-name', type=str, help='Full name', default='DocSpot Admin')

    def handle(self, *args, **options):
        email = options['email'].strip().lower()
        password = options['password']
        full_name = options['full_name']

        if User.objects.filter(email__iexact=email).exists():
            self.stdout.write(self.style.WARNING(f'User "{email}" already exists.'))
            return

        User.objects.create_user(
            username=email,
            email=email,
            password=password,
            full_name=full_name,
            role=Role.ADMIN,
            is_staff=True,
            is_superuser=True
        )

        self.stdout.write(self.style.SUCCESS(f'Successfully created admin user "{email}"'))
