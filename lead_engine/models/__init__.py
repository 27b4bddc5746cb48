# Models package - database models for branches, mappings and leads
from lead_engine.models.branch import Branch, FieldMapping, FieldType, ProjectionView
from lead_engine.models.lead import Lead, LeadUniqueKey
from lead_engine.models.lead_form import LeadForm
