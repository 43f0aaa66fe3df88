"""
Seed data script — populates the database with a small agent roster and
routes a batch of demo leads through intake (assignment + first follow-up).

Usage: cd backend && python seed_data.py
"""
import os
import sys
import django

# Setup Django
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'realty_crm.settings')
django.setup()

from app.models.agent import Agent
from app.services.agent_directory import agent_statistics
from app.services.lead_service import intake_lead


AGENTS = [
    {"name": "Maria Lopez", "email": "maria.lopez@example.com"},
    {"name": "Omar Haddad", "email": "omar.haddad@example.com"},
    {"name": "Grace Kim", "email": "grace.kim@example.com"},
    {"name": "Tom Becker", "email": "tom.becker@example.com", "status": "inactive"},
]

LEADS = [
    {"name": "Priya Patel", "phone": "+1-555-0105", "email": "priya.patel@example.com", "source": "website"},
    {"name": "David Chen", "phone": "+1-555-0102", "email": "david.chen@example.com", "source": "portal"},
    {"name": "James Thompson", "phone": "+1-555-0104", "email": None, "source": "referral"},
    {"name": "Sarah Mitchell", "phone": "+1-555-0107", "email": "s.mitchell@example.com", "source": "website"},
    {"name": "Ahmed Al-Sayed", "phone": "+1-555-0110", "email": "ahmed@example.com", "source": "open_house"},
    {"name": "Lucia Romano", "phone": "+1-555-0111", "email": None, "source": "portal"},
    {"name": "Ben Okafor", "phone": "+1-555-0112", "email": "ben.okafor@example.com", "source": "referral"},
]


def seed():
    for data in AGENTS:
        agent, created = Agent.objects.get_or_create(email=data["email"], defaults=data)
        print(f"{'Created' if created else 'Exists '} agent: {agent}")

    for data in LEADS:
        lead = intake_lead(dict(data))
        print(f"Lead {lead.name} → agent {lead.assigned_agent_id}")

    print("\nAgent load:")
    for row in agent_statistics():
        print(f"  {row['name']:<16} active={row['active_leads']} total={row['total_leads']}")


if __name__ == "__main__":
    seed()
