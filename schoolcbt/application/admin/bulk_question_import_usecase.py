import pandas as pd
from schoolcbt.application.auth.roles import AuthContext
from schoolcbt.application.errors import PermissionDeniedError
from schoolcbt.infrastructure.repositories.question_repo_impl import create_question
from schoolcbt.presentation.schemas.question_schema import BulkQuestionMeta, QuestionCreate
from sqlalchemy.orm import Session
import logging
import io

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ['text', 'option1', 'option2', 'option3', 'option4', 'correct_answer']


def _cell(row, column):
    if column not in row.index or pd.isna(row[column]):
        return None
    return str(row[column]).strip()


def process_bulk_import(db: Session, file_content: bytes, filename: str, meta: BulkQuestionMeta, ctx: AuthContext):
    try:
        logger.info(f"Processing bulk question import: {filename} for {meta.subject}/{meta.class_name}")
        if not (ctx.is_admin or ctx.teaches(meta.subject, meta.class_name)):
            raise PermissionDeniedError("You are not assigned to this subject/class.")
        if filename.endswith('.csv'):
            df = pd.read_csv(io.BytesIO(file_content))
        elif filename.endswith(('.xlsx', '.xls')):
            df = pd.read_excel(io.BytesIO(file_content))
        else:
            raise ValueError("Unsupported file format. Please upload CSV or XLSX.")

        # Clean column names
        df.columns = [str(c).strip().lower() for c in df.columns]

        for col in REQUIRED_COLUMNS:
            if col not in df.columns:
                raise ValueError(f"Missing required column: {col}")

        inserted = 0
        failed = 0
        errors = []

        for index, row in df.iterrows():
            try:
                options = [_cell(row, f'option{i}') or '' for i in range(1, 5)]

                # correct_answer can be 1-4 (option position) or the option text itself
                correct_val = _cell(row, 'correct_answer') or ''
                if correct_val in ['1', '2', '3', '4', '1.0', '2.0', '3.0', '4.0']:
                    correct_val = options[int(float(correct_val)) - 1]

                marks_val = _cell(row, 'marks')
                question = QuestionCreate(
                    subject=meta.subject,
                    class_name=meta.class_name,
                    text=_cell(row, 'text') or '',
                    formula=_cell(row, 'formula'),
                    options=options,
                    correct_answer=correct_val,
                    marks=int(float(marks_val)) if marks_val else 1,
                    image_url=_cell(row, 'image_url'),
                    save_to_bank=meta.save_to_bank,
                )

                create_question(db, question, ctx)
                inserted += 1
            except Exception as e:
                failed += 1
                # header is row 1 in the sheet
                errors.append(f"Row {index + 2}: {str(e)}")

        logger.info(f"Bulk import finished. Inserted: {inserted}, Failed: {failed}")
        return {
            "total_rows": len(df),
            "inserted": inserted,
            "failed": failed,
            "errors": errors
        }

    except Exception as e:
        logger.error(f"Bulk import process failed: {e}", exc_info=True)
        raise
