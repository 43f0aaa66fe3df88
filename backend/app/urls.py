"""
App URL configuration for the lead distribution API.
"""
from django.urls import path
from app.api import agents, leads, sla, tasks

urlpatterns = [
    # Leads
    path('leads/', leads.LeadListCreateView.as_view()),
    path('leads/<uuid:lead_id>', leads.LeadDetailView.as_view()),
    path('leads/<uuid:lead_id>/outcome', leads.ContactOutcomeView.as_view()),
    path('leads/<uuid:lead_id>/assign', leads.LeadAssignView.as_view()),
    path('leads/<uuid:lead_id>/assignments', leads.AssignmentHistoryView.as_view()),
    path('leads/<uuid:lead_id>/clear-unreachable', leads.ClearUnreachableView.as_view()),

    # Tasks
    path('leads/<uuid:lead_id>/tasks', tasks.LeadTasksView.as_view()),
    path('tasks/<uuid:task_id>/complete', tasks.TaskCompleteView.as_view()),

    # Agents
    path('agents/', agents.AgentDirectoryView.as_view()),
    path('agents/stats', agents.AgentStatisticsView.as_view()),

    # SLA
    path('sla/sweep', sla.SLASweepView.as_view()),
]
