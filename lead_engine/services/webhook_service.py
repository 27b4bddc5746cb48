"""
Lead-form routing - ingest webhook leads into the branch their form belongs to.
"""
import logging
from functools import partial
from typing import Any, Dict, List, Optional

from lead_engine.core.exceptions import ConfigurationError, StoreUnavailableError
from lead_engine.core.retry import retry_async
from lead_engine.schemas.webhook import FormIngestion, UnroutedLead, WebhookResult
from lead_engine.services.ingestion_service import BatchIngestor
from lead_engine.services.integrations.base import LeadFormSource
from lead_engine.services.webhook_payloads import FormLead, group_by_form, parse_meta_payload

logger = logging.getLogger(__name__)


class FormLeadRouter:
    """
    Routes leadgen notifications per form to the batch ingestor.

    Form-table calls use the ingestor's retry settings. Once a form's leads
    are ingested their report is always returned, even when the stats
    update fails.
    """

    def __init__(self, forms: LeadFormSource, ingestor: BatchIngestor):
        self.forms = forms
        self.ingestor = ingestor

    async def handle(self, payload: Dict[str, Any]) -> WebhookResult:
        leads = parse_meta_payload(payload)
        result = WebhookResult(received=len(leads))

        for form_id, form_leads in group_by_form(leads).items():
            if not form_id:
                self._unrouted(result, form_id, form_leads, "missing form id")
                continue

            try:
                form = await self._call(partial(self.forms.get_active_form, form_id), f"lookup of form {form_id}")
            except StoreUnavailableError as e:
                self._unrouted(result, form_id, form_leads, f"form lookup failed: {e.message}")
                continue
            if form is None:
                self._unrouted(result, form_id, form_leads, "unknown or inactive form")
                continue

            try:
                report = await self.ingestor.ingest([lead.record for lead in form_leads], form.branch_id)
            except ConfigurationError as e:
                logger.warning(f"Form {form_id} routes to an unusable branch: {e.message}")
                self._unrouted(result, form_id, form_leads, e.message)
                continue

            result.routed.append(FormIngestion(form_id=form_id, branch_id=form.branch_id, report=report))
            await self._record_received(form_id, len(form_leads))

        logger.info(
            f"Webhook: {result.received} leads, {len(result.routed)} forms routed, "
            f"{len(result.unrouted)} leads unrouted"
        )
        return result

    async def _record_received(self, form_id: str, count: int) -> None:
        try:
            await self._call(partial(self.forms.record_received, form_id, count), f"stats update of form {form_id}")
        except StoreUnavailableError as e:
            logger.error(f"Received-lead stats of form {form_id} not updated ({count} leads): {e.message}")

    async def _call(self, operation, description: str):
        return await retry_async(
            operation,
            attempts=self.ingestor.retry_attempts,
            backoff=self.ingestor.retry_backoff,
            timeout=self.ingestor.timeout,
            description=description,
        )

    @staticmethod
    def _unrouted(
        result: WebhookResult, form_id: Optional[str], form_leads: List[FormLead], reason: str
    ) -> None:
        logger.warning(f"{len(form_leads)} webhook leads not routed: {reason} ({form_id})")
        result.unrouted.extend(
            UnroutedLead(lead_id=lead.lead_id, form_id=form_id, reason=reason)
            for lead in form_leads
        )
