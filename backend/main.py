"""
FastAPI backend service for statement parsing and invoice matching.
"""
from fastapi import FastAPI, File, UploadFile, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from typing import List, Optional
import logging

from statement_recon.config import get_settings
from statement_recon.core.detectors import TemplateDetector
from statement_recon.core.errors import InvalidInvoiceError, ParseError
from statement_recon.core.index import load_operation_index
from statement_recon.core.lines import split_text
from statement_recon.core.loader import read_pdf_lines
from statement_recon.core.matcher import InvoiceMatcher
from statement_recon.core.report import ReconciliationReporter
from statement_recon.core.runner import StatementParser
from statement_recon.models.schema import Invoice, OperationIndexEntry, StatementSource

app = FastAPI(title="Statement Reconciliation API", version="1.0.0")

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],  # Vite and other dev servers
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = logging.getLogger(__name__)


class ParseRequest(BaseModel):
    lines: Optional[List[str]] = None
    text: Optional[str] = None
    template: Optional[str] = None


class MatchRequest(BaseModel):
    invoices: List[Invoice]
    operations: Optional[List[OperationIndexEntry]] = None
    max_days: Optional[int] = Field(None, alias="maxDays")
    include_closed: bool = Field(False, alias="includeClosed")


def _parser_for(template: Optional[str]) -> StatementParser:
    try:
        return StatementParser(template or get_settings().STATEMENT_TEMPLATE)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _parse_lines(lines: List[str], template: Optional[str], source: StatementSource):
    parser = _parser_for(template)
    try:
        statement = parser.parse(lines, source)
    except ParseError as e:
        logger.warning(f"Rejected statement: {e}")
        raise HTTPException(status_code=422, detail=f"Could not parse statement: {e}")

    logger.info(f"Parsed statement {statement.statement_id}: {len(statement.operations)} operations found")
    return JSONResponse(content={
        "success": True,
        "data": statement.model_dump(mode="json", by_alias=True),
        "template_used": parser.template_id,
        "summary": {
            "operations_count": len(statement.operations),
            "statement_id": statement.statement_id,
        }
    })


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": "Statement Reconciliation API", "status": "healthy"}


@app.post("/statements/parse")
async def parse_statement_lines(request: ParseRequest):
    """
    Parse statement text lines and return structured data.

    Args:
        request: Either `lines` or the whole `text` of one statement

    Returns:
        Parsed statement data as JSON
    """
    lines = request.lines if request.lines is not None else split_text(request.text or "")
    return _parse_lines(lines, request.template, StatementSource(type="text"))


@app.post("/statements/parse-pdf")
async def parse_statement_pdf(file: UploadFile = File(...), template: Optional[str] = None):
    """Parse an uploaded statement PDF."""
    if not file.filename.lower().endswith('.pdf'):
        raise HTTPException(status_code=400, detail="File must be a PDF")

    try:
        lines = read_pdf_lines(await file.read())
    except Exception as e:
        logger.error(f"Error reading PDF: {e}")
        raise HTTPException(status_code=400, detail=f"Error reading PDF: {e}")

    return _parse_lines(lines, template, StatementSource(type="pdf", entry_name=file.filename))


@app.post("/invoices/match")
async def match_invoices(request: MatchRequest):
    """
    Rank candidate payments for each invoice.

    Operations default to the credit operations of the configured index.
    """
    settings = get_settings()
    max_days = request.max_days if request.max_days is not None else settings.INVOICE_MATCH_MAX_DAYS
    if request.operations is not None:
        matcher = InvoiceMatcher(request.operations, max_days=max_days,
                                 max_candidates=settings.INVOICE_MATCH_MAX_CANDIDATES)
    else:
        try:
            index = load_operation_index(settings.OPERATIONS_INDEX_PATH)
        except FileNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        matcher = InvoiceMatcher.from_index(index, max_days=max_days,
                                            max_candidates=settings.INVOICE_MATCH_MAX_CANDIDATES)

    invoices = [invoice for invoice in request.invoices if request.include_closed or invoice.is_open]
    try:
        report = ReconciliationReporter(matcher).run(invoices)
    except InvalidInvoiceError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return JSONResponse(content={
        "success": True,
        "data": report.model_dump(mode="json", by_alias=True),
        "summary": {
            "invoices_count": len(report.results),
            "matched_count": len(report.matched),
        }
    })


@app.get("/templates")
async def list_templates():
    """List all available templates."""
    detector = TemplateDetector()
    return JSONResponse(content={
        "success": True,
        "templates": [
            {
                "id": template_id,
                "bank": detector.get_template(template_id).get("bank"),
                "description": detector.get_template(template_id).get("description"),
            }
            for template_id in detector.list_templates()
        ]
    })


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
