"""KYC verification guidelines exposed as an MCP resource."""

from mcp_server.protocol import Resource

GUIDELINES_URI = "kyc://guidelines/verification"

GUIDELINES_TEXT = """# KYC Verification Guidelines

## Document Requirements

### ID Documents (Required)
- Must be government-issued (Passport, National ID, or Driver's License)
- Must show full legal name matching the application
- Must show date of birth matching the application
- Must be valid (not expired)
- Photo must be clearly visible

### Proof of Address (Required)
- Must be dated within the last 3 months
- Acceptable documents: utility bill, bank statement, government letter
- Must show full name and residential address
- Must match the address provided in the application

### Income Statement (Optional but recommended)
- Recent payslip, tax return, or employment letter
- Should verify stated occupation and income level

## Verification Process

1. **Check ID Document**: Verify name, DOB, and expiry date
2. **Check Proof of Address**: Verify address matches and document is recent
3. **Cross-Reference**: Ensure all documents show consistent information
4. **Risk Assessment**: Flag any discrepancies or suspicious patterns

## Status Decisions

- **Approve**: All documents valid, information consistent, no red flags
- **Reject**: Fraudulent documents, major discrepancies, or failed verification
- **Under Review**: Missing documents, minor discrepancies needing clarification

## Red Flags
- Mismatched names across documents
- Expired ID documents
- Proof of address older than 3 months
- Inconsistent addresses
- Signs of document tampering
"""

KYC_GUIDELINES = Resource(
    uri=GUIDELINES_URI,
    name="kyc-guidelines",
    description="KYC verification guidelines and rules for document evaluation",
    mime_type="text/markdown",
    text=GUIDELINES_TEXT,
)
